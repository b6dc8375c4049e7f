# temp_mongo/__init__.py
"""
Temporary, isolated MongoDB instances for unit tests.

    from temp_mongo import TempMongo

    with TempMongo.start() as mongo:
        collection = mongo.client["test"]["animals"]
        collection.insert_one({"species": "dog", "cute": "yes"})
"""

from .errors import (
    ClientInitError,
    IoError,
    ProcessSpawnError,
    ReadinessTimeoutError,
    TempMongoError,
)
from .instance import State, TempMongo, TempMongoBuilder
from .seed import DataSeeder

__all__ = [
    'ClientInitError',
    'DataSeeder',
    'IoError',
    'ProcessSpawnError',
    'ReadinessTimeoutError',
    'State',
    'TempMongo',
    'TempMongoBuilder',
    'TempMongoError',
]
