"""
Shared fixtures: an in-memory stand-in for DynamoStore, identities and seeded users.
"""
import copy
import json
import os
import sys
from unittest.mock import MagicMock

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from marketplace.auth import Identity  # noqa: E402
from marketplace.config import config  # noqa: E402
from marketplace.dynamo import ConditionFailed, TransactionCancelled  # noqa: E402
from marketplace.models import Role  # noqa: E402


class InMemoryStore:
    """
    Same operations as DynamoStore, evaluated against dicts.

    Conditions, counters and all-or-nothing transactions behave like
    DynamoDB. Two hooks let tests interleave other writers:
    - before_transact: called once with the store right before the next
      transaction is evaluated (simulates a concurrent committer)
    - fail_next_transact: exception raised instead of the next transaction
    """

    KEYS = {
        config.PROJECTS_TABLE: 'projectId',
        config.REQUESTS_TABLE: 'requestId',
        config.TASKS_TABLE: 'taskId',
        config.SUBMISSIONS_TABLE: 'submissionId',
        config.USERS_TABLE: 'userId',
    }

    def __init__(self):
        self.tables = {name: {} for name in self.KEYS}
        self.before_transact = None
        self.fail_next_transact = None
        self.transactions = []
        self.is_open = False

    def open(self):
        self.is_open = True
        return self

    def close(self):
        self.is_open = False

    @staticmethod
    def _id(key):
        return next(iter(key.values()))

    def snapshot(self):
        return copy.deepcopy(self.tables)

    def get(self, table_name, key):
        item = self.tables[table_name].get(self._id(key))
        return copy.deepcopy(item) if item is not None else None

    def query(self, table_name, index_name, key_name, key_value, scan_forward=True):
        return [
            copy.deepcopy(item)
            for item in self.tables[table_name].values()
            if item.get(key_name) == key_value
        ]

    def scan(self, table_name):
        return [copy.deepcopy(item) for item in self.tables[table_name].values()]

    def _holds(self, op):
        table = self.tables[op['table']]
        if op['action'] == 'Put':
            key_name = self.KEYS[op['table']]
            stored = table.get(op['item'][key_name])
            return not (op.get('unique_key') and stored is not None)

        stored = table.get(self._id(op['key']))
        if op['action'] in ('Update', 'ConditionCheck') and stored is None:
            return False
        for field, value in op.get('expected', {}).items():
            if stored is None or stored.get(field) != value:
                return False
        return True

    def _apply(self, op):
        table = self.tables[op['table']]
        if op['action'] == 'Put':
            item = copy.deepcopy(op['item'])
            table[item[self.KEYS[op['table']]]] = item
            return copy.deepcopy(item)
        if op['action'] == 'Update':
            item = table[self._id(op['key'])]
            item.update(copy.deepcopy(op['values']))
            for field, amount in op['increment'].items():
                item[field] = item.get(field, 0) + amount
            for field in op['remove']:
                item.pop(field, None)
            return copy.deepcopy(item)
        if op['action'] == 'Delete':
            table.pop(self._id(op['key']), None)
        return None

    def write(self, op):
        if not self._holds(op):
            raise ConditionFailed(f"Condition failed for {op['action']} on {op['table']}")
        return self._apply(op)

    def transact(self, operations):
        if self.before_transact is not None:
            hook, self.before_transact = self.before_transact, None
            hook(self)
        if self.fail_next_transact is not None:
            error, self.fail_next_transact = self.fail_next_transact, None
            raise error

        reasons = ['None' if self._holds(op) else 'ConditionalCheckFailed' for op in operations]
        if any(reason != 'None' for reason in reasons):
            raise TransactionCancelled(reasons)
        for op in operations:
            self._apply(op)
        self.transactions.append(operations)

    def batch_delete(self, table_name, keys):
        for key in keys:
            self.tables[table_name].pop(self._id(key), None)


@pytest.fixture
def store():
    store = InMemoryStore().open()
    for identity in (BUYER, OTHER_BUYER, SOLVER_A, SOLVER_B, SOLVER_C, ADMIN):
        store.tables[config.USERS_TABLE][identity.id] = {
            'userId': identity.id,
            'name': identity.name,
            'email': identity.email,
            'role': identity.role,
            'profileInfo': {},
            'createdAt': '2024-01-01T00:00:00+00:00',
        }
    yield store
    store.close()


@pytest.fixture
def files():
    """Upload collaborator double."""
    files = MagicMock()
    files.save.side_effect = lambda task_id, filename, content: f"submissions/{task_id}/{filename}"
    files.generate_presigned_url.side_effect = lambda key: f"https://signed.example/{key}"
    return files


BUYER = Identity('buyer-1', Role.BUYER, 'Bea Buyer', 'bea@example.com')
OTHER_BUYER = Identity('buyer-2', Role.BUYER, 'Otto Other', 'otto@example.com')
SOLVER_A = Identity('solver-a', Role.SOLVER, 'Ada Solver', 'ada@example.com')
SOLVER_B = Identity('solver-b', Role.SOLVER, 'Bob Solver', 'bob@example.com')
SOLVER_C = Identity('solver-c', Role.SOLVER, 'Cy Solver', 'cy@example.com')
ADMIN = Identity('admin-1', Role.ADMIN, 'Ann Admin', 'ann@example.com')


def make_event(identity=None, body=None, path=None, groups=None):
    """API Gateway proxy event carrying Cognito claims for the identity."""
    event = {
        'httpMethod': 'POST',
        'pathParameters': path or {},
        'body': json.dumps(body) if body is not None else None,
        'requestContext': {'authorizer': {'claims': {}}},
    }
    if identity is not None:
        claims = {'sub': identity.id, 'name': identity.name, 'email': identity.email}
        if groups is not None:
            claims['cognito:groups'] = groups
        else:
            claims['custom:role'] = identity.role
        event['requestContext']['authorizer']['claims'] = claims
    return event
