"""
### Named Queries

A named query is an aggregation pipeline stored under a unique name, to be executed later
with parameters:

```python
registry = NamedQueryRegistry(ssn)
registry.register('spendings', 'transactions', [
    {'$match': {'userId': '{{userId}}', 'amount': {'$lt': 0}}},
    {'$group': {'_id': '$category', 'total': {'$sum': '$amount'}}},
])
ssn.commit()

registry.execute('spendings', store, params={'userId': 'u1'}, options={'sort': {'total': 1}})
```

Registering under an existing name overwrites the query: the last writer wins.

The registry is stored in an SQL database, through SqlAlchemy.
The registry never commits: that's up to the caller, who owns the session.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from sqlalchemy.orm import declarative_base, Session

from .substitute import substitute_parameters
from ..exc import InvalidQueryError, NamedQueryNotFoundError

logger = logging.getLogger(__name__)


Base = declarative_base()


class NamedQuery(Base):
    """ A registered pipeline """
    __tablename__ = 'database_queries'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    collection_name = Column(String(255), nullable=False)
    pipeline = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def as_dict(self, include_pipeline=True) -> dict:
        """ Represent as a dict, the way the UI knows it """
        d = {
            'name': self.name,
            'collectionName': self.collection_name,
            'pipeline': self.pipeline,
            'description': self.description,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat(),
        }
        if not include_pipeline:
            d.pop('pipeline')
        return d

    def __repr__(self):
        return '<NamedQuery {!r} on {!r}>'.format(self.name, self.collection_name)


def init_registry(engine):
    """ Create the registry table, if not yet """
    Base.metadata.create_all(engine, tables=[NamedQuery.__table__])


class NamedQueryRegistry:
    """ The storage for named queries """

    def __init__(self, ssn: Session, lenient: bool = True):
        """ Init the registry

        :param ssn: The session to load and save named queries with
        :param lenient: Leave placeholders without parameters as they are, when executing.
            When `False`, raise UnresolvedPlaceholderError
        """
        self._ssn = ssn
        self.lenient = lenient

    def _now(self) -> datetime:
        # Naive UTC: not every database keeps timezones
        return datetime.now(timezone.utc).replace(tzinfo=None)

    def _query(self):
        return self._ssn.query(NamedQuery)

    def register(self, name: str, collection_name: str, pipeline: list, description: str = None):
        """ Create a named query, or overwrite an existing one

        :return: (named query, created?)
        :rtype: (NamedQuery, bool)
        :raises InvalidQueryError: invalid input
        """
        self._validate(name, collection_name, pipeline, description)

        named_query = self._query().filter_by(name=name).one_or_none()
        now = self._now()

        # Create
        if named_query is None:
            named_query = NamedQuery(
                name=name,
                collection_name=collection_name,
                pipeline=pipeline,
                description=description,
                created_at=now,
                updated_at=now,
            )
            self._ssn.add(named_query)
            self._ssn.flush()
            logger.info('Named query created: %r', named_query)
            return named_query, True

        # Update
        named_query.collection_name = collection_name
        named_query.pipeline = pipeline  # assigned, never modified in place: JSON columns don't track that
        named_query.description = description
        named_query.updated_at = now
        self._ssn.flush()
        logger.info('Named query updated: %r', named_query)
        return named_query, False

    @staticmethod
    def _validate(name, collection_name, pipeline, description):
        if not name or not isinstance(name, str):
            raise InvalidQueryError('Named query must have a name')
        if not collection_name or not isinstance(collection_name, str):
            raise InvalidQueryError('Named query must have a collection name')
        if not pipeline or not isinstance(pipeline, list):
            raise InvalidQueryError('Named query pipeline must be a non-empty list of stages')
        if not all(isinstance(stage, dict) for stage in pipeline):
            raise InvalidQueryError('Named query pipeline stages must be objects')
        if description is not None and not isinstance(description, str):
            raise InvalidQueryError('Named query description must be a string')

    def get(self, name: str) -> NamedQuery:
        """ Get a named query

        :raises NamedQueryNotFoundError: not found
        """
        named_query = self._query().filter_by(name=name).one_or_none()
        if named_query is None:
            raise NamedQueryNotFoundError(name)
        return named_query

    def delete(self, name: str) -> NamedQuery:
        """ Delete a named query

        :return: The deleted query
        :raises NamedQueryNotFoundError: not found
        """
        named_query = self.get(name)
        self._ssn.delete(named_query)
        self._ssn.flush()
        logger.info('Named query deleted: %r', named_query)
        return named_query

    def list(self) -> list:
        """ List all named queries, without their pipelines """
        return [named_query.as_dict(include_pipeline=False)
                for named_query in self._query().order_by(NamedQuery.name)]

    def compile(self, name: str, params: dict = None, options: dict = None):
        """ Make a pipeline out of a named query

        :param name: Query name
        :param params: Values for placeholders
        :param options: dict(sort=, skip=, limit=): stages to append, when given
        :return: (named query, pipeline stages)
        :raises NamedQueryNotFoundError: not found
        :raises UnresolvedPlaceholderError: (strict mode only)
        """
        named_query = self.get(name)
        stages = substitute_parameters(named_query.pipeline, params or {}, lenient=self.lenient)

        options = options or {}
        if options.get('sort'):
            stages.append({'$sort': options['sort']})
        if options.get('skip'):
            stages.append({'$skip': options['skip']})
        if options.get('limit'):
            stages.append({'$limit': options['limit']})

        return named_query, stages

    def execute(self, name: str, store, params: dict = None, options: dict = None) -> dict:
        """ Execute a named query

        :param name: Query name
        :param store: The document store to run it with
        :type store: docquery.store.DocumentStore
        :param params: Values for placeholders
        :param options: dict(sort=, skip=, limit=)
        :return: {result, metadata: {total, executedPipeline, queryName}}
        :raises NamedQueryNotFoundError: not found
        :raises StoreError: the store has failed
        """
        named_query, stages = self.compile(name, params, options)
        result = store.aggregate(named_query.collection_name, stages)
        return {
            'result': result,
            'metadata': {
                'total': len(result),
                'executedPipeline': stages,
                'queryName': named_query.name,
            },
        }
