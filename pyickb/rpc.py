import itertools
import logging
import pyickb.cell
import pyickb.core
import pyickb.error
import random
import requests
import typing

# Doc: https://github.com/nervosnetwork/ckb/tree/develop/rpc

log = logging.getLogger(__name__)


class Rpc:
    def __init__(self, url: str) -> None:
        self.url = url

    def call(self, method: str, params: typing.List) -> typing.Any:
        log.debug('call %s %s', method, params)
        r = requests.post(self.url, json={
            'id': random.randint(0x00000000, 0xffffffff),
            'jsonrpc': '2.0',
            'method': method,
            'params': params,
        }).json()
        if 'error' in r:
            raise pyickb.error.RpcError(method, r['error'])
        return r['result']

    def get_block_by_number(self, block_number: str) -> typing.Dict:
        return self.call('get_block_by_number', [block_number])

    def get_cells(self, search_key: typing.Dict, order: str, limit: str, after: typing.Optional[str]) -> typing.Dict:
        return self.call('get_cells', [search_key, order, limit, after])

    def get_cells_iter(self, search_key: typing.Dict) -> typing.Generator[typing.Dict, None, None]:
        cursor = None
        limits = 256
        for _ in itertools.repeat(0):
            r = self.get_cells(search_key, 'asc', hex(limits), cursor)
            cursor = r['last_cursor']
            for e in r['objects']:
                yield e
            if len(r['objects']) < limits:
                break

    def get_header(self, block_hash: str, verbosity: typing.Optional[int] = None) -> typing.Dict:
        return self.call('get_header', [block_hash, verbosity])

    def get_header_by_number(self, block_number: str, verbosity: typing.Optional[int] = None) -> typing.Dict:
        return self.call('get_header_by_number', [block_number, verbosity])

    def get_tip_header(self) -> typing.Dict:
        return self.call('get_tip_header', [])

    def get_transaction(
        self,
        tx_hash: str,
        verbosity: typing.Optional[int] = None,
        only_committed: typing.Optional[bool] = None,
    ) -> typing.Dict:
        return self.call('get_transaction', [tx_hash, verbosity, only_committed])

    def send_transaction(self, transaction: typing.Dict, outputs_validator: typing.Optional[str] = None) -> str:
        return self.call('send_transaction', [transaction, outputs_validator])

    def cells(self, search_key: typing.Dict) -> typing.Generator[pyickb.cell.Cell, None, None]:
        for e in self.get_cells_iter(search_key):
            yield pyickb.cell.Cell.rpc_decode(e)

    def header_lookup(self) -> typing.Callable[[int, pyickb.cell.Cell], pyickb.core.Header]:
        # Headers never change, a lookup remembers every header it fetched.
        cache: typing.Dict[int, pyickb.core.Header] = {}

        def lookup(block_number: int, cell: pyickb.cell.Cell) -> pyickb.core.Header:
            if block_number not in cache:
                cache[block_number] = pyickb.core.Header.rpc_decode(self.get_header_by_number(hex(block_number)))
            return cache[block_number]
        return lookup

    def tip_header(self) -> pyickb.core.Header:
        return pyickb.core.Header.rpc_decode(self.get_tip_header())

    def send(self, tx: pyickb.core.Transaction) -> bytearray:
        tx_hash = self.send_transaction(tx.rpc(), 'passthrough')
        log.info('send 0x%s', tx.hash().hex())
        return pyickb.core.hex_decode(tx_hash)

    def status(self, tx_hash: bytearray) -> str:
        r = self.get_transaction(f'0x{tx_hash.hex()}', None, None)
        if r is None:
            return 'unknown'
        return r['tx_status']['status']
