from docquery.util.inspect import pluck_kwargs_from
from ..exc import DisabledError


class DocQuerySettingsHandler:
    """ Settings keeper for DocQuery

        This is essentially a helper which will feed the correct kwargs to every class.

        DocQuery handlers receive settings as kwargs to their __init__() methods,
        and those kwargs have unique names.

        This class will collect all settings as a single, flat dict,
        and give each handler only the settings it wants.
        Because some handlers have matching settings (e.g. `lenient`),
        all of those will receive them!
    """

    def __init__(self, settings: dict):
        """ Store the settings for every handler

            :param settings: dict of handler kwargs
        """
        assert isinstance(settings, dict)

        #: Settings dict
        self._settings = settings  # not copied: never modified

        #: Handler names
        self._handler_names = set()

        #: all kwargs names (to identify invalid ones)
        self._all_known_kwargs_names = set()

        #: disabled handler names
        self._disabled_handlers = set()

    def get(self, name: str, default=None):
        """ Get a single setting """
        return self._settings.get(name, default)

    def get_settings(self, handler_name: str, handler_cls: type) -> dict:
        """ Get settings for the given handler

            Every time a class is given us, we analyze its __init__() method in order to know its kwargs and its default values.
            Then, we take the matching keys from the settings dict, we take defaults from the argument defaults,
            and make it all into `kwargs` that will be given to the class.

            In addition to that, if the settings contain `<handler_name>_enabled=False`, then it's disabled.
        """
        if not self._settings.get('{}_enabled'.format(handler_name), True):
            self._disabled_handlers.add(handler_name)

        kwargs = pluck_kwargs_from(self._settings, for_func=handler_cls.__init__)

        self._handler_names.add(handler_name)
        self._all_known_kwargs_names.update(kwargs.keys())

        return kwargs

    def is_handler_enabled(self, handler_name: str) -> bool:
        """ Test if the handler is enabled in the configuration """
        return handler_name not in self._disabled_handlers

    def raise_if_not_handler_enabled(self, collection_name: str, handler_name: str):
        """ Raise an error if the handler is not enabled """
        if not self.is_handler_enabled(handler_name):
            raise DisabledError('Query handler "{}" is disabled for "{}"'
                                .format(handler_name, collection_name))

    def raise_if_invalid_handler_settings(self, docquery):
        """ Check whether there were any typos in setting names

            After all handlers were initialized, we've had a chance to analyze all their keyword arguments.
            Now we can check whether every setting was actually used. If not, there must be a typo.

            :raises: KeyError: Invalid settings provided
        """
        handler_names = set('{}_enabled'.format(handler_name)
                            for handler_name in self._handler_names)
        all_known_keys = handler_names | self._all_known_kwargs_names

        invalid_keys = set(self._settings.keys()) - all_known_keys
        if invalid_keys:
            raise KeyError('Invalid settings were provided for {!r}: {}'
                           .format(docquery, ','.join(sorted(invalid_keys))))

    def __repr__(self):
        return '{}({!r})'.format(self.__class__.__name__, self._settings)
