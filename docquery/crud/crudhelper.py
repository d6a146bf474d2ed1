"""
DocQuery is designed to help with data selection for the APIs.
To ease the pain of implementing CRUD for all of your collections,
DocQuery comes with a CRUD helper that exposes DocQuery capabilities for querying to the API user,
and prepares documents for saving.
"""

import uuid
from datetime import datetime, timezone
from typing import Mapping, Iterable, Tuple

from .. import exc
from ..handlers import RunningBalanceSettings
from ..principal import Principal
from ..query import DocQuery
from ..util import Reusable


#: Collections that need per-collection settings out of the box
DEFAULT_COLLECTION_SETTINGS = {
    # A ledger: every transaction gets a running balance
    'transactions': dict(running_balance=RunningBalanceSettings()),
}


class CollectionCrudHelper:
    """ Crud helper: an object that helps implement CRUD operations for an API endpoint:

        * Create: prepare new documents from the submitted dict: give them an id and timestamps
        * Read: use DocQuery for querying
        * Update: prepare the fields to update from the submitted dict
        * Delete: nothing special

        This object is supposed to be initialized only once;
        don't do it for every query, keep it at the class level!

        ```python
        from docquery import CollectionCrudHelper

        class DataView(CollectionViewMixin):
            crudhelper = CollectionCrudHelper(
                # Settings for DocQuery
                **DocQuerySettingsDict(
                    max_items=1000,
                )
            )
            # ...
        ```

        Collections are schema-free, and any collection name can be used:
        settings for particular collections are given with `settings_for`.
    """

    # The class to use for DocQuery
    _DOCQUERY_CLS = DocQuery

    def __init__(self,
                 id_field: str = 'id',
                 timestamps: bool = True,
                 ro_fields: Tuple[str] = ('_id', 'createdAt'),
                 settings_for: Mapping[str, Mapping] = None,
                 **handler_settings):
        """ Init CRUD helper

        :param id_field: The application-level unique identifier of documents
        :param timestamps: Maintain `createdAt` and `updatedAt`
        :param ro_fields: Fields that can't be written on update. `id_field` is always read-only.
        :param settings_for: Per-collection DocQuery settings, merged over `handler_settings`.
            Defaults to DEFAULT_COLLECTION_SETTINGS
        :param handler_settings: Settings for the DocQuery used to make queries
        """
        self.id_field = id_field
        self.timestamps = timestamps
        self.ro_fields = frozenset(ro_fields) | {id_field}
        self.settings_for = DEFAULT_COLLECTION_SETTINGS if settings_for is None else settings_for
        self.handler_settings = handler_settings

        # Reusable DocQuery objects, per collection
        # Initialized on demand: collections are not known in advance
        self._reusable_docqueries = {}

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _new_id(self) -> str:
        return uuid.uuid4().hex

    def validate_collection_name(self, collection_name: str) -> str:
        """ Check that the collection name can be used

            :raises exc.InvalidQueryError: Invalid collection name
        """
        if not collection_name or not isinstance(collection_name, str) \
                or collection_name.startswith(('$', 'system.')) or '\0' in collection_name:
            raise exc.InvalidQueryError('Invalid collection name: {!r}'.format(collection_name))
        return collection_name

    def settings(self, collection_name: str) -> dict:
        """ Get DocQuery settings for a collection """
        return {**self.handler_settings, **self.settings_for.get(collection_name, {})}

    def reusable_docquery(self, collection_name: str) -> DocQuery:
        """ Get a reusable DocQuery for a collection """
        if collection_name not in self._reusable_docqueries:
            self.validate_collection_name(collection_name)
            self._reusable_docqueries[collection_name] = Reusable(
                self._DOCQUERY_CLS(collection_name, self.settings(collection_name))
            )
        return self._reusable_docqueries[collection_name]

    def query_collection(self, collection_name: str, query_obj: Mapping = None, principal: Principal = None) -> DocQuery:
        """ Make a DocQuery using the provided Query Object

            :param collection_name: The collection to query
            :param query_obj: The Query Object to use
            :param principal: The authenticated user
            :raises exc.InvalidQueryError: There is an error in the Query Object that the user has made
            :raises exc.DisabledError: A feature is disabled; likely, due to a configuration issue. See handler_settings.
        """
        # Validate
        if not isinstance(query_obj, (Mapping, NoneType)):
            raise exc.InvalidQueryError('Query Object must be either an object, or null')

        # Query
        return self.reusable_docquery(collection_name) \
            .with_principal(principal) \
            .query(**(query_obj or {}))  # ensure dict

    def new_document(self, document: Mapping) -> dict:
        """ Prepare a new document for saving

            :param document: The document as submitted by the user
            :raises exc.InvalidQueryError: Not an object
        """
        if not isinstance(document, Mapping):
            raise exc.InvalidQueryError('Document must be an object')

        document = {k: v for k, v in document.items() if k != '_id'}
        if not document.get(self.id_field):
            document[self.id_field] = self._new_id()

        if self.timestamps:
            document['createdAt'] = document['updatedAt'] = self._now()
        return document

    def new_documents(self, documents: Iterable[Mapping]) -> list:
        """ Prepare many new documents for saving

            :raises exc.InvalidQueryError: Not a non-empty list of objects
        """
        if not isinstance(documents, (list, tuple)):
            raise exc.InvalidQueryError('Request body must be an array of documents')
        if not documents:
            raise exc.InvalidQueryError('Request body array cannot be empty')
        return [self.new_document(document) for document in documents]

    def update_payload(self, fields: Mapping) -> dict:
        """ Prepare the fields to update an existing document with

            Read-only fields are dropped.

            :raises exc.InvalidQueryError: Not an object
        """
        if not isinstance(fields, Mapping):
            raise exc.InvalidQueryError('Document must be an object')

        fields = {k: v for k, v in fields.items() if k not in self.ro_fields}
        if self.timestamps:
            fields['updatedAt'] = self._now()
        return fields

    def id_filter(self, id) -> dict:
        """ Filter to find a document by its id """
        return {self.id_field: id}


NoneType = type(None)
