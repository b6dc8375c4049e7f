#!/usr/bin/env python3
"""
Start a temporary MongoDB, use it, and clean it up.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from temp_mongo import TempMongo


def main():
    mongo = TempMongo.start()
    print(f"Using temporary directory: {mongo.directory}")

    collection = mongo.client["test"]["animals"]
    collection.insert_one({"species": "dog", "cute": "yes", "scary": "usually not"})
    collection.insert_one({"species": "T-Rex", "cute": "maybe", "scary": "yes"})

    dog = collection.find_one({"species": "dog"})
    print(f"Found: {dog}")

    # close() also runs when `mongo` is garbage collected, but
    # kill_and_clean() raises if the directory could not be removed.
    mongo.kill_and_clean()


if __name__ == '__main__':
    main()
