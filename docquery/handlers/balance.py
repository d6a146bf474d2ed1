"""
### Running Balance

Ledger collections, such as `transactions`, get a computed `balance` field on every document:
the cumulative sum of `amount` over all preceding documents of the same account, ordered by
`date`, then by `id`.

The balance is computed *before* the user's filter is applied, so it does not depend on
which documents the user has chosen to see: filtering on a date range still shows the
true balance of the account at every transaction.

Amounts are summed as integer cents, so that `10.10 + (-0.05)` is exactly `10.05`.

This handler takes no input from the Query Object. It is enabled by the `running_balance` setting:

```python
DocQuery('transactions', DocQuerySettingsDict(
    running_balance=RunningBalanceSettings(),
))
```
"""

from typing import NamedTuple

from .base import DocQueryHandlerBase
from .filter import ABSENT


class RunningBalanceSettings(NamedTuple):
    """ Field names of a ledger collection """
    #: Signed decimal amount of a document
    amount_field: str = 'amount'
    #: The ledger partition: balances are computed per account
    account_field: str = 'accountId'
    #: Chronological order
    date_field: str = 'date'
    #: Tie-breaker for documents with the same date
    tiebreak_field: str = 'id'
    #: The computed field
    balance_field: str = 'balance'

    @property
    def amount_cents_field(self):
        return self.amount_field + 'Cents'

    @property
    def balance_cents_field(self):
        return self.balance_field + 'Cents'


class DocRunningBalance(DocQueryHandlerBase):
    """ Running balance stages

        Is placed before the `$match` stage of the filter.
        Only the pre-filter scope is applied before it: the principal, and the account
        when the filter pins it with a plain equality.
    """

    query_object_section_name = 'balance'

    def __init__(self, collection_name, running_balance=None, owner_field='userId'):
        """ Init the running balance

        :param collection_name: The collection the query is made for
        :param running_balance: Ledger field names. `None` disables the stages
        :type running_balance: RunningBalanceSettings | None
        :param owner_field: The field to scope the ledger to the principal with
        """
        super(DocRunningBalance, self).__init__(collection_name)

        # Settings
        if isinstance(running_balance, dict):
            running_balance = RunningBalanceSettings(**running_balance)
        self.running_balance = running_balance
        self.owner_field = owner_field

    def input(self, value=None):
        # No input from the Query Object: but the flag is still set
        return super(DocRunningBalance, self).input(None)

    @property
    def is_active(self):
        return self.running_balance is not None

    def compile_scope(self):
        """ The filter applied before the balance is computed

        :rtype: dict
        """
        scope = {}

        principal = self.docquery.principal if self.docquery is not None else None
        if self.owner_field and principal is not None:
            scope[self.owner_field] = principal.id

        # Sub-account scope
        # Only when the filter is there to tell it
        if self.docquery is not None:
            account = self.docquery.handler_filter.get_scalar_equality(self.running_balance.account_field)
            if account is not ABSENT:
                scope[self.running_balance.account_field] = account

        return scope

    def compile_stages(self):
        """ [scope?, cents, window sum, balance, cleanup] """
        if not self.is_active:
            return []

        rb = self.running_balance
        stages = []

        scope = self.compile_scope()
        if scope:
            stages.append({'$match': scope})

        stages.extend([
            # Integer cents
            {'$addFields': {
                rb.amount_cents_field: {'$round': [{'$multiply': ['$' + rb.amount_field, 100]}, 0]},
            }},
            # Cumulative sum, per account
            {'$setWindowFields': {
                'partitionBy': '$' + rb.account_field,
                'sortBy': {rb.date_field: 1, rb.tiebreak_field: 1},
                'output': {
                    rb.balance_cents_field: {
                        '$sum': '$' + rb.amount_cents_field,
                        'window': {'documents': ['unbounded', 'current']},
                    },
                },
            }},
            # Back to decimals
            {'$addFields': {
                rb.balance_field: {'$divide': ['$' + rb.balance_cents_field, 100]},
            }},
            # Cleanup
            {'$project': {
                rb.amount_cents_field: 0,
                rb.balance_cents_field: 0,
            }},
        ])
        return stages

    def get_final_input_value(self):
        return self.running_balance._asdict() if self.is_active else None
