"""
DynamoDB store for the marketplace tables.

DynamoStore is the injected persistence capability: handlers open it once per
container and pass it to every operation. Writes are described with the
put_op/update_op/delete_op/check_op helpers and executed either one at a time
(write) or all-or-nothing (transact, backed by TransactWriteItems).
"""
import boto3
from typing import List, Dict, Any, Iterable, Optional
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError
from .config import config
from .errors import Unexpected
from .logging import logger


class ConditionFailed(Exception):
    """A conditional single-item write did not match the stored item."""


class TransactionCancelled(Exception):
    """
    DynamoDB cancelled a transaction.

    reasons holds one cancellation code per operation, in the order the
    operations were submitted ('None' for operations that did not fail).
    """

    def __init__(self, reasons: Iterable[str]):
        self.reasons = list(reasons)
        super().__init__(f"Transaction cancelled: {self.reasons}")

    def failed_at(self, index: int) -> bool:
        if index >= len(self.reasons):
            return False
        return self.reasons[index] not in (None, 'None')

    def condition_failed_at(self, index: int) -> bool:
        return index < len(self.reasons) and self.reasons[index] == 'ConditionalCheckFailed'


def put_op(table: str, item: Dict[str, Any], unique_key: Optional[str] = None) -> Dict[str, Any]:
    """Put an item; with unique_key the put fails if the key already exists."""
    return {'action': 'Put', 'table': table, 'item': item, 'unique_key': unique_key}


def update_op(
    table: str,
    key: Dict[str, Any],
    values: Optional[Dict[str, Any]] = None,
    expected: Optional[Dict[str, Any]] = None,
    increment: Optional[Dict[str, int]] = None,
    remove: Optional[Iterable[str]] = None
) -> Dict[str, Any]:
    """
    Update an existing item.

    Args:
        values: attributes to SET
        expected: attribute equality checks evaluated at write time
        increment: numeric attributes to add to (missing counts as 0)
        remove: attributes to REMOVE
    """
    return {
        'action': 'Update',
        'table': table,
        'key': key,
        'values': values or {},
        'expected': expected or {},
        'increment': increment or {},
        'remove': list(remove or []),
    }


def delete_op(table: str, key: Dict[str, Any], expected: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {'action': 'Delete', 'table': table, 'key': key, 'expected': expected or {}}


def check_op(table: str, key: Dict[str, Any], expected: Dict[str, Any]) -> Dict[str, Any]:
    """Condition-only operation; only valid inside a transaction."""
    return {'action': 'ConditionCheck', 'table': table, 'key': key, 'expected': expected}


def build_expressions(op: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate an operation descriptor into DynamoDB expression parameters.
    Values are plain Python values; transact() serializes them.
    """
    names = {}
    values = {}
    params = {}
    action = op['action']

    if action == 'Update':
        set_parts = []
        for i, (field, value) in enumerate(op['values'].items()):
            names[f'#v{i}'] = field
            values[f':v{i}'] = value
            set_parts.append(f'#v{i} = :v{i}')
        for i, (field, amount) in enumerate(op['increment'].items()):
            names[f'#n{i}'] = field
            values[f':n{i}'] = amount
            values[':zero'] = 0
            set_parts.append(f'#n{i} = if_not_exists(#n{i}, :zero) + :n{i}')

        clauses = []
        if set_parts:
            clauses.append('SET ' + ', '.join(set_parts))
        if op['remove']:
            remove_parts = []
            for i, field in enumerate(op['remove']):
                names[f'#r{i}'] = field
                remove_parts.append(f'#r{i}')
            clauses.append('REMOVE ' + ', '.join(remove_parts))
        if not clauses:
            raise ValueError('Update operation has nothing to update')
        params['UpdateExpression'] = ' '.join(clauses)

    conditions = []
    if action == 'Put' and op.get('unique_key'):
        names['#u'] = op['unique_key']
        conditions.append('attribute_not_exists(#u)')
    if action in ('Update', 'ConditionCheck'):
        # Never upsert: the target item must already exist
        for i, key_name in enumerate(op['key']):
            names[f'#k{i}'] = key_name
            conditions.append(f'attribute_exists(#k{i})')
    for i, (field, value) in enumerate(op.get('expected', {}).items()):
        names[f'#c{i}'] = field
        values[f':c{i}'] = value
        conditions.append(f'#c{i} = :c{i}')

    if conditions:
        params['ConditionExpression'] = ' AND '.join(conditions)
    if names:
        params['ExpressionAttributeNames'] = names
    if values:
        params['ExpressionAttributeValues'] = values
    return params


class DynamoStore:
    """
    Document-store capability backed by DynamoDB.

    Usage:
        store = DynamoStore().open()
        ...
        store.close()

    or as a context manager.
    """

    def __init__(self, region_name: str = None, endpoint_url: str = None, resource=None):
        self.region_name = region_name or config.AWS_REGION
        self.endpoint_url = endpoint_url or config.DYNAMODB_ENDPOINT_URL or None
        self._resource = resource
        self._serializer = TypeSerializer()

    def open(self) -> 'DynamoStore':
        if self._resource is None:
            self._resource = boto3.resource(
                'dynamodb',
                region_name=self.region_name,
                endpoint_url=self.endpoint_url
            )
            logger.info(f"Opened DynamoDB store in {self.region_name}")
        return self

    def close(self) -> None:
        if self._resource is not None:
            self._resource.meta.client.close()
            self._resource = None
            logger.info("Closed DynamoDB store")

    def __enter__(self) -> 'DynamoStore':
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._resource is not None

    def _table(self, table_name: str):
        if self._resource is None:
            logger.error(f"DynamoDB store used before open() for {table_name}")
            raise Unexpected()
        return self._resource.Table(table_name)

    def _translate_error(self, error: Exception, operation: str) -> Exception:
        if isinstance(error, ClientError):
            code = error.response.get('Error', {}).get('Code')
            if code == 'ConditionalCheckFailedException':
                return ConditionFailed(str(error))
            if code == 'TransactionCanceledException':
                # Cancellation reasons correspond to the TransactItems list order
                reasons = [
                    reason.get('Code', 'None')
                    for reason in error.response.get('CancellationReasons', [])
                ]
                return TransactionCancelled(reasons)
        logger.error(f"DynamoDB {operation} failed: {error}")
        return Unexpected()

    def _serialize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in data.items()}

    def get(self, table_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Strongly consistent single-item read."""
        table = self._table(table_name)
        try:
            response = table.get_item(Key=key, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f'get_item on {table_name}') from e
        return response.get('Item')

    def query(
        self,
        table_name: str,
        index_name: str,
        key_name: str,
        key_value: Any,
        scan_forward: bool = True
    ) -> List[Dict[str, Any]]:
        """Query a GSI by partition key, following LastEvaluatedKey pagination."""
        table = self._table(table_name)
        params = {
            'IndexName': index_name,
            'KeyConditionExpression': Key(key_name).eq(key_value),
            'ScanIndexForward': scan_forward
        }
        items = []
        try:
            while True:
                response = table.query(**params)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                params['ExclusiveStartKey'] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f'query on {table_name}/{index_name}') from e
        return items

    def scan(self, table_name: str) -> List[Dict[str, Any]]:
        table = self._table(table_name)
        params = {}
        items = []
        try:
            while True:
                response = table.scan(**params)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                params['ExclusiveStartKey'] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f'scan on {table_name}') from e
        return items

    def write(self, op: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Execute one conditional write.

        Returns:
            The stored item for Put, the updated item for Update, None for Delete

        Raises:
            ConditionFailed: when the operation's condition does not hold
        """
        table = self._table(op['table'])
        params = build_expressions(op)
        try:
            if op['action'] == 'Put':
                table.put_item(Item=op['item'], **params)
                return op['item']
            if op['action'] == 'Update':
                response = table.update_item(Key=op['key'], ReturnValues='ALL_NEW', **params)
                return response.get('Attributes')
            if op['action'] == 'Delete':
                table.delete_item(Key=op['key'], **params)
                return None
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f"{op['action']} on {op['table']}") from e
        raise ValueError(f"Unsupported single write action {op['action']}")

    def transact(self, operations: List[Dict[str, Any]]) -> None:
        """
        Execute operations as one all-or-nothing TransactWriteItems call.

        Raises:
            TransactionCancelled: when any condition fails or a concurrent
                transaction touched the same items; nothing is applied
        """
        if not operations:
            return

        transact_items = []
        for op in operations:
            entry = {'TableName': op['table']}
            if op['action'] == 'Put':
                entry['Item'] = self._serialize(op['item'])
            else:
                entry['Key'] = self._serialize(op['key'])
            params = build_expressions(op)
            if 'ExpressionAttributeValues' in params:
                params['ExpressionAttributeValues'] = self._serialize(params['ExpressionAttributeValues'])
            entry.update(params)
            transact_items.append({op['action']: entry})

        client = self._table(operations[0]['table']).meta.client
        try:
            client.transact_write_items(TransactItems=transact_items)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, 'transact_write_items') from e

    def batch_delete(self, table_name: str, keys: List[Dict[str, Any]]) -> None:
        """Delete many items; not atomic."""
        if not keys:
            return
        table = self._table(table_name)
        try:
            with table.batch_writer() as batch:
                for key in keys:
                    batch.delete_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, f'batch delete on {table_name}') from e
        logger.info(f"Deleted {len(keys)} items from {table_name}")
