from copy import copy


class Reusable:
    """ Make a reusable handler or query

        A configured DocQuery object has its settings parsed and its handlers initialized;
        it's a pity to do it for every request.
        This wrapper makes a copy every time an attribute of its wrapped object is accessed,
        so that input given to one copy never leaks into the next request.

        Example:

            transactions = Reusable(DocQuery('transactions', DocQuerySettingsDict(
                running_balance=RunningBalanceSettings(),
            )))

            transactions.query(**query_spec).end()  # works on a fresh copy
    """
    __slots__ = ('__obj',)

    def __init__(self, obj):
        self.__obj = obj

    # copy-on-access

    def __getattr__(self, attr):
        return getattr(copy(self.__obj), attr)

    def __repr__(self):
        return 'Reusable({!r})'.format(self.__obj)
