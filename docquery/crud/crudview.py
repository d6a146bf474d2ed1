from enum import Enum
from typing import Mapping, Iterable, Union, Tuple, Any

from .. import exc
from ..principal import Principal
from ..query import DocQuery, CompiledPipeline, parse_query_string
from ..store import DocumentStore
from .crudhelper import CollectionCrudHelper


class CRUD_METHOD(Enum):
    """ CRUD method """
    GET = 'GET'
    LIST = 'LIST'
    CREATE = 'CREATE'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'


class CollectionViewMixin:
    """ A mixin class for implementations of CRUD views over document collections.

        This class is supposed to be re-initialized for every request.

        To implement a CRUD view:
        1. Set `crudhelper` at the class level, initialize it with the proper settings
        2. Implement the `_get_store()`, `_get_principal()` and the `_get_query_string()` methods
        3. If necessary, implement the `_save_hook()` to customize new & updated documents
        4. Call the `_method_*()` methods from your routes, and make responses from what they return

        For an example on how to use CollectionViewMixin, see this implementation:
        [tests/crud_view.py](tests/crud_view.py)

        Unlike with SQL, there's no session to commit: documents are saved right away.

        Attrs:
            _docquery (DocQuery):
                The DocQuery object used to process this query.
    """

    #: Set the CRUD helper object at the class level
    crudhelper = None  # type: CollectionCrudHelper

    def __init__(self):
        #: The DocQuery for this request, if it was initialized by _dquery()
        self._docquery = None  # type: DocQuery

        #: The current CRUD method
        self._current_crud_method = None

    # region Abstract Methods

    def _get_store(self) -> DocumentStore:
        """ (Abstract method) Get the document store to run queries with """
        raise NotImplementedError('_get_store() not implemented on {}'
                                  .format(type(self)))

    def _get_principal(self) -> Union[Principal, None]:
        """ (Abstract method) Get the authenticated user for this request """
        raise NotImplementedError('_get_principal() not implemented on {}'
                                  .format(type(self)))

    def _get_query_string(self) -> Union[str, None]:
        """ (Abstract method) Get the JSON Query Object text for the current request.

            Typically, it comes from the URL: `?query=...`
        """
        raise NotImplementedError

    # endregion

    # region Hooks

    def _docquery_hook(self, docquery: DocQuery) -> DocQuery:
        """ (Hook) A hook invoked in _dquery() to modify DocQuery, if necessary

            This is the last chance to modify a DocQuery.
            Right after this hook, it end()s, and generates a pipeline.
        """
        return docquery

    def _save_hook(self, collection_name: str, new: dict, prev: dict = None):
        """ (Hook) Hooks into create(), update() methods, before a document is saved.

            :param collection_name: The collection
            :param new: The new document, or the fields to update
            :param prev: Not available: documents are updated in place by the store
        """
        pass

    # endregion

    # ###
    # CRUD methods' implementations

    def _method_list(self, collection_name: str) -> dict:
        """ (CRUD method) Fetch a list of documents

                GET /data/users?query={...}

            :return: {data: [...], metadata: {total, limit, offset}}
            :raises exc.InvalidQuerySyntaxError: The Query Object is not a JSON object
            :raises exc.InvalidQueryError: Query Object errors made by the user
            :raises exc.StoreError: The store has failed
        """
        self._current_crud_method = CRUD_METHOD.LIST

        # Query
        pipeline = self._dquery(collection_name, parse_query_string(self._get_query_string()))

        # Run
        store = self._get_store()
        data = store.aggregate(collection_name, pipeline.stages)
        total = store.count(collection_name, pipeline.count_filter)

        # Done
        return {
            'data': data,
            'metadata': pipeline.metadata(total),
        }

    def _method_get(self, collection_name: str, id: str) -> dict:
        """ (CRUD method) Fetch a single document by its id

                GET /data/users/01HZ...

            :raises exc.DocumentNotFoundError: Nothing found
        """
        self._current_crud_method = CRUD_METHOD.GET
        self.crudhelper.validate_collection_name(collection_name)

        document = self._get_store().find_one(collection_name, self.crudhelper.id_filter(id))
        if document is None:
            raise exc.DocumentNotFoundError(collection_name, id)
        return document

    def _method_create(self, collection_name: str, document: Mapping) -> dict:
        """ (CRUD method) Create a new document

                POST /data/users
                {"name": "Hakon"}

            :return: The saved document, with its `id`
            :raises exc.InvalidQueryError: Not an object
        """
        self._current_crud_method = CRUD_METHOD.CREATE
        self.crudhelper.validate_collection_name(collection_name)

        document = self.crudhelper.new_document(document)
        self._save_hook(collection_name, document, None)
        return self._get_store().insert_one(collection_name, document)

    def _method_create_many(self, collection_name: str, documents: Iterable[Mapping]) -> list:
        """ (CRUD method) Create many documents at once

                POST /data/users/batch
                [{"name": "Hakon"}, {"name": "Harald"}]

            :raises exc.InvalidQueryError: Not a non-empty list of objects
        """
        self._current_crud_method = CRUD_METHOD.CREATE
        self.crudhelper.validate_collection_name(collection_name)

        documents = self.crudhelper.new_documents(documents)
        for document in documents:
            self._save_hook(collection_name, document, None)
        return self._get_store().insert_many(collection_name, documents)

    def _method_update(self, collection_name: str, id: str, fields: Mapping) -> dict:
        """ (CRUD method) Update an existing document by merging the fields

                PUT /data/users/01HZ...
                {"name": "Hakon"}

            :return: The updated document
            :raises exc.DocumentNotFoundError: The document not found
        """
        self._current_crud_method = CRUD_METHOD.UPDATE
        self.crudhelper.validate_collection_name(collection_name)

        fields = self.crudhelper.update_payload(fields)
        self._save_hook(collection_name, fields, None)

        store = self._get_store()
        if fields:
            document = store.update_one(collection_name, self.crudhelper.id_filter(id), fields)
        else:
            document = store.find_one(collection_name, self.crudhelper.id_filter(id))

        if document is None:
            raise exc.DocumentNotFoundError(collection_name, id)
        return document

    def _method_delete(self, collection_name: str, id: str) -> dict:
        """ (CRUD method) Delete a document

                DELETE /data/users/01HZ...

            :return: The deleted document
            :raises exc.DocumentNotFoundError: The document not found
        """
        self._current_crud_method = CRUD_METHOD.DELETE
        self.crudhelper.validate_collection_name(collection_name)

        document = self._get_store().delete_one(collection_name, self.crudhelper.id_filter(id))
        if document is None:
            raise exc.DocumentNotFoundError(collection_name, id)
        return document

    def _method_delete_many(self, collection_name: str, ids: Iterable[Any]) -> dict:
        """ (CRUD method) Delete many documents by their ids

                DELETE /data/users/batch
                {"ids": ["01HZ...", "01HY..."]}

            Ids that were not found are reported, but are not an error.

            :return: {successCount, errors: [{id, error}]}
            :raises exc.InvalidQueryError: Not a non-empty list of ids
        """
        self._current_crud_method = CRUD_METHOD.DELETE
        self.crudhelper.validate_collection_name(collection_name)

        if not isinstance(ids, (list, tuple)) or not ids:
            raise exc.InvalidQueryError('Request body must contain a non-empty array "ids"')

        store = self._get_store()
        id_field = self.crudhelper.id_field
        filter = {id_field: {'$in': list(ids)}}

        # Find out which ones exist before they're gone
        found = store.aggregate(collection_name, [
            {'$match': filter},
            {'$project': {id_field: 1}},
        ])
        found_ids = {document.get(id_field) for document in found}

        success_count = store.delete_many(collection_name, filter)
        return {
            'successCount': success_count,
            'errors': [{'id': id, 'error': 'Not found'}
                       for id in ids
                       if id not in found_ids],
        }

    # region Helpers

    def _dquery_simple(self, collection_name: str, query_object: Mapping = None) -> DocQuery:
        """ Make a DocQuery with the Query Object, on behalf of the current principal

            This method does not run the View's hooks; that's why it is "simple".
        """
        return self.crudhelper.query_collection(collection_name, query_object, self._get_principal())

    def _dquery(self, collection_name: str, query_object: Mapping = None) -> CompiledPipeline:
        """ Run a DocQuery and invoke the View's hooks.

            :raises exc.InvalidQueryError: Query Object errors made by the user
        """
        # Initialize the DocQuery
        dquery = self._dquery_simple(collection_name, query_object)

        # DocQuery hook
        dquery = self._docquery_hook(dquery)

        # Store
        self._docquery = dquery

        # Compile
        return dquery.end()

    # endregion


class NamedQueryViewMixin:
    """ A mixin class for views that manage and execute named queries.

        This class is supposed to be re-initialized for every request.

        To implement it, implement `_get_registry()` and `_get_store()`.
        Commit the registry session after the methods that change it: `_method_register()`, `_method_delete()`.
    """

    # region Abstract Methods

    def _get_registry(self):
        """ (Abstract method) Get the named query registry

        :rtype: docquery.named.NamedQueryRegistry
        """
        raise NotImplementedError('_get_registry() not implemented on {}'
                                  .format(type(self)))

    def _get_store(self) -> DocumentStore:
        """ (Abstract method) Get the document store to run queries with """
        raise NotImplementedError('_get_store() not implemented on {}'
                                  .format(type(self)))

    # endregion

    def _method_register(self, body: Mapping) -> Tuple[dict, bool]:
        """ Register a named query

                POST /queries
                {"name": ..., "collectionName": ..., "pipeline": [...], "description": ...}

            :return: (named query dict, created?)
            :raises exc.InvalidQueryError: Invalid input
        """
        if not isinstance(body, Mapping):
            raise exc.InvalidQueryError('Named query must be an object')

        named_query, created = self._get_registry().register(
            name=body.get('name'),
            collection_name=body.get('collectionName'),
            pipeline=body.get('pipeline'),
            description=body.get('description'),
        )
        return named_query.as_dict(), created

    def _method_execute(self, name: str, body: Mapping = None) -> dict:
        """ Execute a named query

                POST /queries/:name/execute
                {"params": {...}, "options": {"sort": ..., "skip": ..., "limit": ...}}

            :raises exc.NamedQueryNotFoundError: Not found
        """
        body = body or {}
        if not isinstance(body, Mapping):
            raise exc.InvalidQueryError('Execution request must be an object')

        params = body.get('params') or {}
        options = body.get('options') or {}
        if not isinstance(params, Mapping) or not isinstance(options, Mapping):
            raise exc.InvalidQueryError('"params" and "options" must be objects')

        return self._get_registry().execute(name, self._get_store(), params=params, options=options)

    def _method_get(self, name: str) -> dict:
        """ Get a named query, with its pipeline """
        return self._get_registry().get(name).as_dict()

    def _method_delete(self, name: str) -> dict:
        """ Delete a named query """
        return self._get_registry().delete(name).as_dict()

    def _method_list(self) -> list:
        """ List named queries, without pipelines """
        return self._get_registry().list()
