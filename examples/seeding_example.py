#!/usr/bin/env python3
"""
Seed a temporary MongoDB from code or from a seed file.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from temp_mongo import DataSeeder, TempMongo


def main():
    parser = argparse.ArgumentParser(description='Seed a temporary MongoDB')
    parser.add_argument('--seed-file', help='JSON seed file (database_name, collection_name, documents)')
    parser.add_argument('--keep', action='store_true', help='Keep the temporary directory')

    args = parser.parse_args()

    with TempMongo.start(clean_on_drop=not args.keep) as mongo:
        print(f"Temporary directory: {mongo.directory}")

        if args.seed_file:
            seed = DataSeeder.from_json_file(args.seed_file)
        else:
            seed = mongo.prepare_seed_document("test_documents", "trex", [
                {"name": "Alice", "age": 30},
                {"name": "Bob", "age": 25},
            ])

        count = mongo.load_document(seed)
        print(f"Seeded {count} document(s) into {seed.database_name}.{seed.collection_name}")

        mongo.print_documents(seed.database_name, seed.collection_name)


if __name__ == '__main__':
    main()
