import pyickb
import pytest


class Node:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def post(self, url, json):
        self.calls.append(json)
        node = self

        class Response:
            def json(self):
                return node.result(json['method'], json['params'])
        return Response()


def header_json(number: int):
    return {
        'version': '0x0',
        'compact_target': '0x1e015555',
        'timestamp': '0x0',
        'number': hex(number),
        'epoch': hex(pyickb.epoch.Epoch(1, 0, 1).encode()),
        'parent_hash': '0x' + '00' * 32,
        'transactions_root': '0x' + '00' * 32,
        'proposals_hash': '0x' + '00' * 32,
        'extra_hash': '0x' + '00' * 32,
        'dao': '0x' + '00' * 32,
        'nonce': '0x0',
    }


def test_call(monkeypatch):
    node = Node(lambda method, params: {'jsonrpc': '2.0', 'id': 0, 'result': '0x2a'})
    monkeypatch.setattr(pyickb.rpc.requests, 'post', node.post)
    assert pyickb.rpc.Rpc('http://127.0.0.1:8114').call('get_tip_block_number', []) == '0x2a'
    assert node.calls[0]['method'] == 'get_tip_block_number'
    assert node.calls[0]['jsonrpc'] == '2.0'


def test_call_error(monkeypatch):
    node = Node(lambda method, params: {'jsonrpc': '2.0', 'id': 0, 'error': {'code': -1, 'message': 'boom'}})
    monkeypatch.setattr(pyickb.rpc.requests, 'post', node.post)
    with pytest.raises(pyickb.error.RpcError) as e:
        pyickb.rpc.Rpc('http://127.0.0.1:8114').get_tip_header()
    assert e.value.method == 'get_tip_header'


def test_header_lookup(monkeypatch):
    node = Node(lambda method, params: {'jsonrpc': '2.0', 'id': 0, 'result': header_json(int(params[0], 16))})
    monkeypatch.setattr(pyickb.rpc.requests, 'post', node.post)
    lookup = pyickb.rpc.Rpc('http://127.0.0.1:8114').header_lookup()
    header = lookup(100, None)
    assert header.raw.number == 100
    assert lookup(100, None) is header
    assert len(node.calls) == 1


def test_get_cells_iter(monkeypatch):
    lock = pyickb.cell.Script(bytearray(32), 1, bytearray(20))

    def result(method, params):
        after = params[3]
        n = 256 if after is None else 1
        objects = [{
            'block_number': '0x1',
            'out_point': {'index': hex(i), 'tx_hash': '0x' + '11' * 32},
            'output': {'capacity': hex(100 * pyickb.denomination.ckbytes), 'lock': lock.rpc(), 'type': None},
            'output_data': '0x',
            'tx_index': '0x0',
        } for i in range(n)]
        return {'jsonrpc': '2.0', 'id': 0, 'result': {'last_cursor': '0xff', 'objects': objects}}
    node = Node(result)
    monkeypatch.setattr(pyickb.rpc.requests, 'post', node.post)
    cells = list(pyickb.rpc.Rpc('http://127.0.0.1:8114').cells({'script': lock.rpc(), 'script_type': 'lock'}))
    assert len(cells) == 257
    assert len(node.calls) == 2
    assert node.calls[1]['params'][3] == '0xff'
    assert cells[0].lock == lock


def test_status(monkeypatch):
    node = Node(lambda method, params: {'jsonrpc': '2.0', 'id': 0, 'result': {
        'transaction': None, 'tx_status': {'status': 'proposed', 'block_hash': None},
    }})
    monkeypatch.setattr(pyickb.rpc.requests, 'post', node.post)
    rpc = pyickb.rpc.Rpc('http://127.0.0.1:8114')
    assert rpc.status(bytearray(32)) == 'proposed'
    assert node.calls[0]['params'][0] == '0x' + '00' * 32


def test_send(monkeypatch):
    tx = pyickb.transaction.Skeleton().transaction()
    node = Node(lambda method, params: {'jsonrpc': '2.0', 'id': 0, 'result': '0x' + tx.hash().hex()})
    monkeypatch.setattr(pyickb.rpc.requests, 'post', node.post)
    assert pyickb.rpc.Rpc('http://127.0.0.1:8114').send(tx) == tx.hash()
    assert node.calls[0]['method'] == 'send_transaction'
    assert node.calls[0]['params'][0] == tx.rpc()
