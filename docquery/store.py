"""
### Document Store

DocQuery only compiles pipelines: running them is up to a document store.

`DocumentStore` is the contract that the CRUD view and the named query registry rely upon,
and `MongoDocumentStore` implements it with `pymongo`.

Documents never leave the store with the store-internal `_id`:
the application-level identifier is the `id` field.
"""

import logging
from contextlib import contextmanager

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .exc import StoreError

logger = logging.getLogger(__name__)


class DocumentStore:
    """ A document store: collections of schema-free documents """

    def aggregate(self, collection_name: str, stages: list) -> list:
        """ Run an aggregation pipeline

        :return: list of documents
        """
        raise NotImplementedError

    def count(self, collection_name: str, filter: dict) -> int:
        """ Count the documents that match a filter """
        raise NotImplementedError

    def find_one(self, collection_name: str, filter: dict):
        """ Get one document, or `None` """
        raise NotImplementedError

    def insert_one(self, collection_name: str, document: dict) -> dict:
        """ Insert a document; return it """
        raise NotImplementedError

    def insert_many(self, collection_name: str, documents: list) -> list:
        """ Insert documents; return them """
        raise NotImplementedError

    def update_one(self, collection_name: str, filter: dict, fields: dict):
        """ Set fields on one document

        :return: the updated document, or `None` if nothing matched
        """
        raise NotImplementedError

    def delete_one(self, collection_name: str, filter: dict):
        """ Delete one document

        :return: the deleted document, or `None` if nothing matched
        """
        raise NotImplementedError

    def delete_many(self, collection_name: str, filter: dict) -> int:
        """ Delete documents; return the number of deleted documents """
        raise NotImplementedError


class MongoDocumentStore(DocumentStore):
    """ DocumentStore over MongoDB

        Example:

            store = MongoDocumentStore('mongodb://localhost:27017', 'app')
            store.aggregate('transactions', dq.end().stages)
    """

    #: MongoClient options: a small pool, and no hanging forever
    CLIENT_OPTIONS = dict(
        maxPoolSize=5,
        serverSelectionTimeoutMS=5000,
        socketTimeoutMS=10000,
        retryWrites=True,
        retryReads=True,
    )

    #: Never return the store-internal id
    PROJECTION = {'_id': 0}

    def __init__(self, uri: str, database: str, **client_options):
        """ Connect to MongoDB

        :param uri: Connection string
        :param database: Database name
        :param client_options: More options for MongoClient; override CLIENT_OPTIONS
        """
        client = MongoClient(uri, **{**self.CLIENT_OPTIONS, **client_options})
        self._init(client, database)
        logger.info('MongoDB client initialized for database "%s"', database)

    @classmethod
    def from_client(cls, client: MongoClient, database: str):
        """ Use an existing MongoClient """
        store = cls.__new__(cls)
        store._init(client, database)
        return store

    def _init(self, client, database):
        self._client = client
        self._database = client[database]

    def close(self):
        self._client.close()
        logger.info('MongoDB client closed')

    def collection(self, collection_name: str):
        """ Get a pymongo collection

        :rtype: pymongo.collection.Collection
        """
        return self._database[collection_name]

    @contextmanager
    def _operation(self, operation: str, collection_name: str):
        """ Report store failures as StoreError """
        try:
            yield
        except PyMongoError as e:
            logger.error('MongoDB failed to %s on "%s": %s', operation, collection_name, e)
            raise StoreError(operation, collection_name, e) from e

    @staticmethod
    def _strip_id(document):
        if document is not None:
            document.pop('_id', None)
        return document

    def aggregate(self, collection_name, stages):
        with self._operation('aggregate', collection_name):
            return [self._strip_id(doc)
                    for doc in self.collection(collection_name).aggregate(stages)]

    def count(self, collection_name, filter):
        with self._operation('count', collection_name):
            return self.collection(collection_name).count_documents(filter)

    def find_one(self, collection_name, filter):
        with self._operation('find', collection_name):
            return self.collection(collection_name).find_one(filter, projection=self.PROJECTION)

    def insert_one(self, collection_name, document):
        document = dict(document)  # pymongo sets `_id` on what it's given
        with self._operation('insert', collection_name):
            self.collection(collection_name).insert_one(document)
        return self._strip_id(document)

    def insert_many(self, collection_name, documents):
        documents = [dict(document) for document in documents]
        with self._operation('insert', collection_name):
            self.collection(collection_name).insert_many(documents)
        return [self._strip_id(document) for document in documents]

    def update_one(self, collection_name, filter, fields):
        with self._operation('update', collection_name):
            return self.collection(collection_name).find_one_and_update(
                filter,
                {'$set': fields},
                projection=self.PROJECTION,
                return_document=ReturnDocument.AFTER,
            )

    def delete_one(self, collection_name, filter):
        with self._operation('delete', collection_name):
            return self.collection(collection_name).find_one_and_delete(filter, projection=self.PROJECTION)

    def delete_many(self, collection_name, filter):
        with self._operation('delete', collection_name):
            return self.collection(collection_name).delete_many(filter).deleted_count
