import hashlib
import json
import pyickb.molecule
import typing

# Specifies how the script code_hash is used to match the script code and how to run the code.
script_hash_type_data = 0
script_hash_type_type = 1
script_hash_type_data1 = 2
script_hash_type_data2 = 4

script_hash_type_name = {
    script_hash_type_data: 'data',
    script_hash_type_type: 'type',
    script_hash_type_data1: 'data1',
    script_hash_type_data2: 'data2',
}

# Cell dep types.
dep_type_code = 0
dep_type_dep_group = 1


def hash(data: bytearray) -> bytearray:
    return bytearray(hashlib.blake2b(data, digest_size=32, person=b'ckb-default-hash').digest())


def hex_decode(data: str) -> bytearray:
    assert data.startswith('0x')
    return bytearray.fromhex(data[2:])


class Script:
    def __init__(self, code_hash: bytearray, hash_type: int, args: bytearray) -> None:
        assert len(code_hash) == 32
        assert hash_type in script_hash_type_name
        self.code_hash = code_hash
        self.hash_type = hash_type
        self.args = args

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, Script)
        return all([
            self.code_hash == other.code_hash,
            self.hash_type == other.hash_type,
            self.args == other.args,
        ])

    def hash(self) -> bytearray:
        return hash(self.molecule())

    def json(self) -> typing.Dict:
        return {
            'code_hash': self.code_hash.hex(),
            'hash_type': self.hash_type,
            'args': self.args.hex(),
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Table([
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte,
            pyickb.molecule.Bytes,
        ]).encode([self.code_hash, self.hash_type, self.args])

    @classmethod
    def molecule_decode(cls, data: bytearray) -> typing.Self:
        result = pyickb.molecule.Table([
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte,
            pyickb.molecule.Bytes,
        ]).decode(data)
        return cls(result[0], result[1], result[2])

    def molecule_size(self) -> int:
        # Bytes a script occupies in a cell: code hash, hash type and args.
        return 32 + 1 + len(self.args)

    def rpc(self) -> typing.Dict:
        return {
            'code_hash': f'0x{self.code_hash.hex()}',
            'hash_type': script_hash_type_name[self.hash_type],
            'args': f'0x{self.args.hex()}',
        }

    @classmethod
    def rpc_decode(cls, data: typing.Dict) -> typing.Self:
        return cls(
            hex_decode(data['code_hash']),
            {v: k for k, v in script_hash_type_name.items()}[data['hash_type']],
            hex_decode(data['args']),
        )


class OutPoint:
    def __init__(self, tx_hash: bytearray, index: int) -> None:
        assert len(tx_hash) == 32
        self.tx_hash = tx_hash
        self.index = index

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, OutPoint)
        return all([
            self.tx_hash == other.tx_hash,
            self.index == other.index,
        ])

    def __hash__(self) -> int:
        return int.from_bytes(self.molecule())

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'tx_hash': self.tx_hash.hex(),
            'index': self.index,
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Struct([
            pyickb.molecule.Byte32,
            pyickb.molecule.U32,
        ]).encode([self.tx_hash, self.index])

    @classmethod
    def molecule_decode(cls, data: bytearray) -> typing.Self:
        result = pyickb.molecule.Struct([
            pyickb.molecule.Byte32,
            pyickb.molecule.U32,
        ]).decode(data)
        return OutPoint(result[0], result[1])

    @classmethod
    def molecule_size(cls) -> int:
        return pyickb.molecule.Byte32.size() + pyickb.molecule.U32.size()

    def rpc(self) -> typing.Dict:
        return {
            'tx_hash': f'0x{self.tx_hash.hex()}',
            'index': hex(self.index),
        }

    @classmethod
    def rpc_decode(cls, data: typing.Dict) -> typing.Self:
        return OutPoint(hex_decode(data['tx_hash']), int(data['index'], 16))


class CellInput:
    def __init__(self, since: int, previous_output: OutPoint) -> None:
        self.since = since
        self.previous_output = previous_output

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, CellInput)
        return all([
            self.since == other.since,
            self.previous_output == other.previous_output,
        ])

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'since': self.since,
            'previous_output': self.previous_output.json()
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Struct([
            pyickb.molecule.U64,
            pyickb.molecule.Custom(OutPoint.molecule_size())
        ]).encode([self.since, self.previous_output.molecule()])

    @classmethod
    def molecule_size(cls) -> int:
        return pyickb.molecule.U64.size() + OutPoint.molecule_size()

    def rpc(self) -> typing.Dict:
        return {
            'since': hex(self.since),
            'previous_output': self.previous_output.rpc()
        }


class CellOutput:
    def __init__(self, capacity: int, lock: Script, kype: typing.Optional[Script]) -> None:
        self.capacity = capacity
        self.lock = lock
        self.kype = kype

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'capacity': self.capacity,
            'lock': self.lock.json(),
            'type': self.kype.json() if self.kype else None
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Table([
            pyickb.molecule.U64,
            pyickb.molecule.Custom(0),
            pyickb.molecule.Custom(0),
        ]).encode([
            self.capacity,
            self.lock.molecule(),
            self.kype.molecule() if self.kype else bytearray(),
        ])

    def rpc(self) -> typing.Dict:
        return {
            'capacity': hex(self.capacity),
            'lock': self.lock.rpc(),
            'type': self.kype.rpc() if self.kype else None
        }


class CellDep:
    def __init__(self, out_point: OutPoint, dep_type: int) -> None:
        assert dep_type in [dep_type_code, dep_type_dep_group]
        self.out_point = out_point
        self.dep_type = dep_type

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, CellDep)
        return all([
            self.out_point == other.out_point,
            self.dep_type == other.dep_type,
        ])

    def __hash__(self) -> int:
        return int.from_bytes(self.molecule())

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'out_point': self.out_point.json(),
            'dep_type': self.dep_type,
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Struct([
            pyickb.molecule.Custom(OutPoint.molecule_size()),
            pyickb.molecule.Byte,
        ]).encode([self.out_point.molecule(), self.dep_type])

    @classmethod
    def molecule_size(cls) -> int:
        return OutPoint.molecule_size() + pyickb.molecule.Byte.size()

    def rpc(self) -> typing.Dict:
        return {
            'out_point': self.out_point.rpc(),
            'dep_type': {dep_type_code: 'code', dep_type_dep_group: 'dep_group'}[self.dep_type]
        }


class RawTransaction:
    def __init__(
        self,
        version: int,
        cell_deps: typing.List[CellDep],
        header_deps: typing.List[bytearray],
        inputs: typing.List[CellInput],
        outputs: typing.List[CellOutput],
        outputs_data: typing.List[bytearray]
    ) -> None:
        self.version = version
        self.cell_deps = cell_deps
        self.header_deps = header_deps
        self.inputs = inputs
        self.outputs = outputs
        self.outputs_data = outputs_data

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def hash(self) -> bytearray:
        return hash(self.molecule())

    def json(self) -> typing.Dict:
        return {
            'version': self.version,
            'cell_deps': [e.json() for e in self.cell_deps],
            'header_deps': [e.hex() for e in self.header_deps],
            'inputs': [e.json() for e in self.inputs],
            'outputs': [e.json() for e in self.outputs],
            'outputs_data': [e.hex() for e in self.outputs_data],
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Table([
            pyickb.molecule.U32,
            pyickb.molecule.Slice(pyickb.molecule.Custom(CellDep.molecule_size())),
            pyickb.molecule.Slice(pyickb.molecule.Byte32),
            pyickb.molecule.Slice(pyickb.molecule.Custom(CellInput.molecule_size())),
            pyickb.molecule.Scale(pyickb.molecule.Custom(0)),
            pyickb.molecule.Scale(pyickb.molecule.Bytes),
        ]).encode([
            self.version,
            [e.molecule() for e in self.cell_deps],
            self.header_deps,
            [e.molecule() for e in self.inputs],
            [e.molecule() for e in self.outputs],
            self.outputs_data,
        ])

    def rpc(self) -> typing.Dict:
        return {
            'version': hex(self.version),
            'cell_deps': [e.rpc() for e in self.cell_deps],
            'header_deps': [f'0x{e.hex()}' for e in self.header_deps],
            'inputs': [e.rpc() for e in self.inputs],
            'outputs': [e.rpc() for e in self.outputs],
            'outputs_data': [f'0x{e.hex()}' for e in self.outputs_data],
        }


class Transaction:
    def __init__(self, raw: RawTransaction, witnesses: typing.List[bytearray]) -> None:
        self.raw = raw
        self.witnesses = witnesses

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def hash(self) -> bytearray:
        return self.raw.hash()

    def json(self) -> typing.Dict:
        r = self.raw.json()
        r['witnesses'] = [e.hex() for e in self.witnesses]
        return r

    def molecule(self) -> bytearray:
        return pyickb.molecule.Table([
            pyickb.molecule.Custom(0),
            pyickb.molecule.Scale(pyickb.molecule.Bytes),
        ]).encode([self.raw.molecule(), self.witnesses])

    def rpc(self) -> typing.Dict:
        r = self.raw.rpc()
        r['witnesses'] = [f'0x{e.hex()}' for e in self.witnesses]
        return r


class WitnessArgs:
    def __init__(
        self,
        lock: typing.Optional[bytearray],
        input_type: typing.Optional[bytearray],
        output_type: typing.Optional[bytearray],
    ) -> None:
        self.lock = lock
        self.input_type = input_type
        self.output_type = output_type

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, WitnessArgs)
        return all([
            self.lock == other.lock,
            self.input_type == other.input_type,
            self.output_type == other.output_type,
        ])

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'lock': self.lock.hex() if self.lock is not None else None,
            'input_type': self.input_type.hex() if self.input_type is not None else None,
            'output_type': self.output_type.hex() if self.output_type is not None else None,
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Table([
            pyickb.molecule.Option(pyickb.molecule.Bytes),
            pyickb.molecule.Option(pyickb.molecule.Bytes),
            pyickb.molecule.Option(pyickb.molecule.Bytes),
        ]).encode([self.lock, self.input_type, self.output_type])

    @classmethod
    def molecule_decode(cls, data: bytearray) -> typing.Self:
        result = pyickb.molecule.Table([
            pyickb.molecule.Option(pyickb.molecule.Bytes),
            pyickb.molecule.Option(pyickb.molecule.Bytes),
            pyickb.molecule.Option(pyickb.molecule.Bytes),
        ]).decode(data)
        return WitnessArgs(result[0], result[1], result[2])


class RawHeader:
    def __init__(
        self,
        version: int,
        compact_target: int,
        timestamp: int,
        number: int,
        epoch: int,
        parent_hash: bytearray,
        transactions_root: bytearray,
        proposals_hash: bytearray,
        extra_hash: bytearray,
        dao: bytearray,
    ) -> None:
        self.version = version
        self.compact_target = compact_target
        self.timestamp = timestamp
        self.number = number
        self.epoch = epoch
        self.parent_hash = parent_hash
        self.transactions_root = transactions_root
        self.proposals_hash = proposals_hash
        self.extra_hash = extra_hash
        self.dao = dao

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'version': self.version,
            'compact_target': self.compact_target,
            'timestamp': self.timestamp,
            'number': self.number,
            'epoch': self.epoch,
            'parent_hash': self.parent_hash.hex(),
            'transactions_root': self.transactions_root.hex(),
            'proposals_hash': self.proposals_hash.hex(),
            'extra_hash': self.extra_hash.hex(),
            'dao': self.dao.hex(),
        }

    def molecule(self) -> bytearray:
        return pyickb.molecule.Struct([
            pyickb.molecule.U32,
            pyickb.molecule.U32,
            pyickb.molecule.U64,
            pyickb.molecule.U64,
            pyickb.molecule.U64,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
        ]).encode([
            self.version,
            self.compact_target,
            self.timestamp,
            self.number,
            self.epoch,
            self.parent_hash,
            self.transactions_root,
            self.proposals_hash,
            self.extra_hash,
            self.dao,
        ])

    @classmethod
    def rpc_decode(cls, data: typing.Dict) -> typing.Self:
        return RawHeader(
            version=int(data['version'], 16),
            compact_target=int(data['compact_target'], 16),
            timestamp=int(data['timestamp'], 16),
            number=int(data['number'], 16),
            epoch=int(data['epoch'], 16),
            parent_hash=hex_decode(data['parent_hash']),
            transactions_root=hex_decode(data['transactions_root']),
            proposals_hash=hex_decode(data['proposals_hash']),
            extra_hash=hex_decode(data['extra_hash']),
            dao=hex_decode(data['dao']),
        )


class Header:
    # Headers never change once built, so the hash is computed a single time.

    def __init__(self, raw: RawHeader, nonce: int) -> None:
        self.raw = raw
        self.nonce = nonce
        self.digest = hash(self.molecule())

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, Header)
        return self.digest == other.digest

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def hash(self) -> bytearray:
        return self.digest

    def json(self) -> typing.Dict:
        r = self.raw.json()
        r['nonce'] = self.nonce
        r['hash'] = self.digest.hex()
        return r

    def molecule(self) -> bytearray:
        return pyickb.molecule.Struct([
            pyickb.molecule.U32,
            pyickb.molecule.U32,
            pyickb.molecule.U64,
            pyickb.molecule.U64,
            pyickb.molecule.U64,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
            pyickb.molecule.Byte32,
            pyickb.molecule.U128,
        ]).encode([
            self.raw.version,
            self.raw.compact_target,
            self.raw.timestamp,
            self.raw.number,
            self.raw.epoch,
            self.raw.parent_hash,
            self.raw.transactions_root,
            self.raw.proposals_hash,
            self.raw.extra_hash,
            self.raw.dao,
            self.nonce,
        ])

    @classmethod
    def rpc_decode(cls, data: typing.Dict) -> typing.Self:
        return Header(RawHeader.rpc_decode(data), int(data['nonce'], 16))


def dao_encode(c: int, ar: int, s: int, u: int) -> bytearray:
    # CKB's block header has a particular field named dao containing auxiliary information for Nervos DAO's use.
    # https://github.com/nervosnetwork/rfcs/blob/master/rfcs/0023-dao-deposit-withdraw/0023-dao-deposit-withdraw.md
    return pyickb.molecule.Struct([
        pyickb.molecule.U64,
        pyickb.molecule.U64,
        pyickb.molecule.U64,
        pyickb.molecule.U64,
    ]).encode([c, ar, s, u])


def dao_decode(d: bytearray) -> typing.Tuple[int, int, int, int]:
    c = int.from_bytes(d[0x00:0x08], 'little')
    ar = int.from_bytes(d[0x08:0x10], 'little')
    s = int.from_bytes(d[0x10:0x18], 'little')
    u = int.from_bytes(d[0x18:0x20], 'little')
    return c, ar, s, u
