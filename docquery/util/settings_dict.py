from typing import *


class DocQuerySettingsDict(dict):
    """ DocQuery settings container.

        A plain dict that documents every available setting, and gives autocompletion.

        The keyword settings in this object are just plain kwargs names
        for every handler object's __init__ method,
        which are fed to subclasses of DocQueryHandlerBase by DocQuerySettingsHandler.

        In addition to that, there are '<handler-name>_enabled' settings,
        that can enable or disable a handler.
    """

    def __init__(self,
                 # --- filter & balance
                 owner_field: str = 'userId',
                 # --- filter & everything else that parses input
                 lenient: bool = True,
                 # --- sort
                 default_sort_field: str = '_id',
                 default_sort_direction: str = 'desc',
                 # --- limit
                 max_items: int = None,
                 # --- balance
                 running_balance: 'docquery.handlers.RunningBalanceSettings' = None,
                 # --- enabled handlers?
                 filter_enabled: bool = True,
                 sort_enabled: bool = True,
                 limit_enabled: bool = True,
                 balance_enabled: bool = True,
                 ):
        """ `DocQuery` settings that let you configure the way queries are compiled.

        Example:
            ```python
            from docquery import DocQuery, DocQuerySettingsDict, RunningBalanceSettings

            dq = DocQuery('transactions', DocQuerySettingsDict(
                owner_field='ownerId',
                max_items=500,
                running_balance=RunningBalanceSettings(account_field='walletId'),
            ))
            ```

        Args:
            owner_field (str): (for: filter, balance)
                The reserved name of the field that identifies the owner of a document.
                Whenever a condition mentions this field, its value is replaced with the id of the
                authenticated principal: a user can't filter on other users' data through it.
                The running balance uses it to scope the ledger to the principal.
                Use `None` to disable.
            lenient (bool): (for: filter, query)
                The lenient-parse policy.
                When `True` (the default), malformed conditions are dropped with a warning,
                unknown operators are treated as equality, unknown Query Object keys are ignored.
                When `False`, every one of those raises an `InvalidQueryError`.
            default_sort_field (str): (for: sort)
                The field to sort by when the Query Object has neither `sortObject` nor `orderByField`.
            default_sort_direction (str): (for: sort)
                'asc' or 'desc': the default for `orderDirection`.
            max_items (int): (for: limit)
                The maximum number of documents that can be loaded with this query.
                The user can never go any higher than that, and this value is forced onto every query.
            running_balance (RunningBalanceSettings): (for: balance)
                Enables the running balance stages for this collection, and tells which fields to use.
                `None` for collections that aren't ledgers.

            filter_enabled (bool): Enable/disable the `filter` handler
            sort_enabled (bool): Enable/disable the `sort` handler
            limit_enabled (bool): Enable/disable the `limit` handler
            balance_enabled (bool): Enable/disable the `balance` handler
        """
        super(DocQuerySettingsDict, self).__init__()
        self.update({k: v
                     for k, v in locals().items()
                     if k not in {'__class__', 'self'}})
        # locals(): every argument is a setting, and this only runs once per collection

    def and_more(self, **settings):
        """ Copy the object and add more settings to it """
        return self.__class__(**{**self, **settings})


class CollectionCrudHelperSettingsDict(DocQuerySettingsDict):
    """ CollectionCrudHelper + DocQuery settings container. """
    def __init__(self,
                 id_field: str = 'id',
                 timestamps: bool = True,
                 ro_fields: Tuple[str] = ('_id', 'createdAt'),
                 settings_for: Mapping[str, Mapping] = None,

                 # The rest is DocQuery settings
                 # CollectionCrudHelper puts them apart
                 **docquery_settings
                 ):
        """ More settings are available for the CRUD helper:

        Args:
            id_field (str): The application-level unique identifier of a document.

                It is generated when a document is created without one, and is used to
                address documents by GET, PUT, DELETE. It is different from the store-internal `_id`.

            timestamps (bool): Maintain `createdAt` and `updatedAt` on every document.

            ro_fields (list[str]): Fields that are never written from the input.

                The `id_field` is always read-only on update.

            settings_for (dict[str, dict]): Per-collection DocQuery settings.

                The keys are collection names; the values are merged over the default settings.
                Example: `{'transactions': dict(running_balance=RunningBalanceSettings())}`

            **docquery_settings: more settings for `DocQuery` (as described above)
        """
        super(CollectionCrudHelperSettingsDict, self).__init__(**docquery_settings)
        self.update({k: v  # See the parent method
                     for k, v in locals().items()
                     if k not in {'__class__', 'self', 'docquery_settings'}})
