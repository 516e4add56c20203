import json
import pyickb.core
import pyickb.denomination
import pyickb.error
import typing


class Script(pyickb.core.Script):
    # A script extended with what a transaction needs in order to use it: the cell deps and header deps it requires,
    # the since its inputs must carry and the witness fragment placed next to them.

    def __init__(
        self,
        code_hash: bytearray,
        hash_type: int = pyickb.core.script_hash_type_type,
        args: bytearray = bytearray(),
        cell_deps: typing.Iterable[pyickb.core.CellDep] = (),
        header_deps: typing.Iterable[pyickb.core.Header] = (),
        since: typing.Optional[int] = None,
        witness: typing.Optional[bytearray] = None,
    ) -> None:
        super().__init__(code_hash, hash_type, bytearray(args))
        self.cell_deps = tuple(cell_deps)
        self.header_deps = tuple(header_deps)
        self.since = since
        self.witness = witness

    def json(self) -> typing.Dict:
        r = super().json()
        r['cell_deps'] = [e.json() for e in self.cell_deps]
        r['header_deps'] = [e.hash().hex() for e in self.header_deps]
        r['since'] = self.since
        r['witness'] = self.witness.hex() if self.witness is not None else None
        return r

    def replace(self, **kwargs: typing.Any) -> typing.Self:
        value = {
            'code_hash': self.code_hash,
            'hash_type': self.hash_type,
            'args': self.args,
            'cell_deps': self.cell_deps,
            'header_deps': self.header_deps,
            'since': self.since,
            'witness': self.witness,
        }
        value.update(kwargs)
        return Script(**value)


class Cell:
    def __init__(
        self,
        capacity: typing.Optional[int],
        lock: Script,
        kype: typing.Optional[Script] = None,
        data: bytearray = bytearray(),
        out_point: typing.Optional[pyickb.core.OutPoint] = None,
        block_hash: typing.Optional[bytearray] = None,
        block_number: typing.Optional[int] = None,
        tx_index: typing.Optional[int] = None,
    ) -> None:
        self.lock = lock
        self.kype = kype
        self.data = bytearray(data)
        self.out_point = out_point
        self.block_hash = block_hash
        self.block_number = block_number
        self.tx_index = tx_index
        # An unset capacity is filled with the minimal capacity the cell occupies. An explicit one is kept as is.
        self.capacity = self.occupied_capacity() if capacity is None else capacity

    def __repr__(self) -> str:
        return json.dumps(self.json())

    def json(self) -> typing.Dict:
        return {
            'capacity': self.capacity,
            'lock': self.lock.json(),
            'type': self.kype.json() if self.kype else None,
            'data': self.data.hex(),
            'out_point': self.out_point.json() if self.out_point else None,
            'block_hash': self.block_hash.hex() if self.block_hash else None,
            'block_number': self.block_number,
            'tx_index': self.tx_index,
        }

    def occupied_capacity(self) -> int:
        size = 8 + self.lock.molecule_size() + len(self.data)
        if self.kype:
            size += self.kype.molecule_size()
        return size * pyickb.denomination.ckbytes

    def output(self) -> pyickb.core.CellOutput:
        return pyickb.core.CellOutput(self.capacity, self.lock, self.kype)

    def replace(self, **kwargs: typing.Any) -> typing.Self:
        value = {
            'capacity': self.capacity,
            'lock': self.lock,
            'kype': self.kype,
            'data': self.data,
            'out_point': self.out_point,
            'block_hash': self.block_hash,
            'block_number': self.block_number,
            'tx_index': self.tx_index,
        }
        value.update(kwargs)
        return Cell(**value)

    @classmethod
    def rpc_decode(cls, data: typing.Dict) -> typing.Self:
        # Decode a live cell as returned by the indexer's get_cells method.
        output = data['output']
        return cls(
            capacity=int(output['capacity'], 16),
            lock=Script.rpc_decode(output['lock']),
            kype=Script.rpc_decode(output['type']) if output.get('type') else None,
            data=pyickb.core.hex_decode(data.get('output_data') or '0x'),
            out_point=pyickb.core.OutPoint.rpc_decode(data['out_point']),
            block_number=int(data['block_number'], 16) if 'block_number' in data else None,
            tx_index=int(data['tx_index'], 16) if 'tx_index' in data else None,
        )


def script_eq(a: typing.Optional[pyickb.core.Script], b: typing.Optional[pyickb.core.Script]) -> bool:
    if a is None and b is None:
        raise pyickb.error.InvalidComparison()
    if a is None or b is None:
        return False
    return a == b


def script_is(script: pyickb.core.Script, config: typing.Any, name: str) -> bool:
    # Config is a pyickb.config.Config. Args are not part of a script's identity here.
    return script_eq(script, config.script(name).replace(args=script.args))


def is_capacity(cell: Cell) -> bool:
    return cell.kype is None and len(cell.data) == 0
