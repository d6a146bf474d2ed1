"""

If you know how to query documents in a document store, you can query your collections with the same
simple language the UI speaks: a list of conditions, a sort order, and a page.

The Query Object, in JSON format, will let you sort, filter, and paginate.
You would typically send this object in the URL query string, like this:

```
GET /data/users?query={"conditions":[{"field":"age","operator":">=","value":18}]}
```

The name of the `query` argument, however, may differ from project to project.



Query Object Syntax
-------------------

A Query Object is a JSON object that the API user can submit to the server to change the way the results are generated.
It is an object with the following properties:

* `conditions`: [Filter Operation](#filter-operation) filters the results, using your criteria
* `orderByField`, `orderDirection`, `sortObject`: [Sort Operation](#sort-operation) determines the sorting
* `limitCount`, `offsetCount`, `startAfter`: [Limit Operation](#limit-operation) paginates the results

An example Query Object is:

```javascript
{
  conditions: [
    {field: 'sex', operator: '==', value: 'female'},  # Girls
    {field: 'age', operator: '>=', value: 18},  # Age >= 18
  ],
  orderByField: 'age',  # Sort by age
  orderDirection: 'asc',  # ascending
  limitCount: 100,  # Display 100 per page
  offsetCount: 10,  # Skip first 10 documents
}
```

Ledger collections also get a [Running Balance](#running-balance), which takes no input.

Detailed syntax for every operation is provided in the relevant sections.
"""

from .base import DocQueryHandlerBase
from .filter import DocFilter, \
    ConditionExpressionBase, EqualityExpression, OperatorExpression, MembershipExpression, \
    DirectValueExpression, OwnerExpression, RegexExpression, LikeExpression, \
    Predicate, ABSENT, coerce_value, fold_expressions, compile_filter
from .sort import DocSort
from .limit import DocLimit, parse_int
from .balance import DocRunningBalance, RunningBalanceSettings
