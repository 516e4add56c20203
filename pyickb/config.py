import enum
import logging
import pyickb.cell
import pyickb.core
import pyickb.error
import pyickb.molecule
import pyickb.rpc
import typing

log = logging.getLogger(__name__)


class ScriptName(enum.StrEnum):
    SECP256K1_BLAKE160 = 'secp256k1_blake160'
    DAO = 'dao'


class Config:
    # Chain configuration: the address prefix, the node url and the well known scripts by name. Every script
    # carries the cell deps needed to run it.

    def __init__(self, hrp: str, url: str, script: typing.Dict[str, pyickb.cell.Script]) -> None:
        for name, s in script.items():
            assert len(s.code_hash) == 32, name
            assert len(s.cell_deps) > 0, name
        self.hrp = hrp
        self.url = url
        self.scripts = dict(script)

    def __repr__(self) -> str:
        return f'Config({self.hrp}, {self.url}, {sorted(self.scripts)})'

    def replace(self, **kwargs: typing.Any) -> typing.Self:
        value = {
            'hrp': self.hrp,
            'url': self.url,
            'script': self.scripts,
        }
        value.update(kwargs)
        return Config(**value)

    def script(self, name: str) -> pyickb.cell.Script:
        if name not in self.scripts:
            raise pyickb.error.ScriptNotFound(name)
        return self.scripts[name]


def script_conf(code_hash: str, hash_type: int, tx_hash: str, index: int, dep_type: int) -> pyickb.cell.Script:
    out_point = pyickb.core.OutPoint(bytearray.fromhex(tx_hash), index)
    return pyickb.cell.Script(
        bytearray.fromhex(code_hash),
        hash_type,
        cell_deps=[pyickb.core.CellDep(out_point, dep_type)],
    )


dao_code_hash = '82d76d1b75fe2fd9a27dfbaa65a039221a380d76c926f378d3f81cf3e7e13f2e'
secp256k1_blake160_code_hash = '9bd7e06f3ecf4be0f2fcd2188b23f1b9fcc88e5d4b65a8637b17723bbda3cce8'

mainnet = Config(
    'ckb',
    # https://github.com/nervosnetwork/ckb/wiki/Public-JSON-RPC-nodes
    'https://mainnet.ckb.dev',
    {
        ScriptName.DAO: script_conf(
            dao_code_hash,
            pyickb.core.script_hash_type_type,
            'e2fb199810d49a4d8beec56718ba2593b665db9d52299a0f9e6e75416d73ff5c',
            2,
            pyickb.core.dep_type_code,
        ),
        ScriptName.SECP256K1_BLAKE160: script_conf(
            secp256k1_blake160_code_hash,
            pyickb.core.script_hash_type_type,
            '71a7ba8fc96349fea0ed3a5c47992e3b4084b031a42264a018e0072e8172e46c',
            0,
            pyickb.core.dep_type_dep_group,
        ),
    },
)

testnet = Config(
    'ckt',
    # https://github.com/nervosnetwork/ckb/wiki/Public-JSON-RPC-nodes
    'https://testnet.ckb.dev',
    {
        ScriptName.DAO: script_conf(
            dao_code_hash,
            pyickb.core.script_hash_type_type,
            '8f8c79eb6671709633fe6a46de93c0fedc9c1b8a6527a18d3983879542635c9f',
            2,
            pyickb.core.dep_type_code,
        ),
        ScriptName.SECP256K1_BLAKE160: script_conf(
            secp256k1_blake160_code_hash,
            pyickb.core.script_hash_type_type,
            'f8de3bb47d055cdf460d93a2a6e1b05f7432f9777c8c474abf4eec1d4aee5d37',
            0,
            pyickb.core.dep_type_dep_group,
        ),
    },
)


def develop(url: str = 'http://127.0.0.1:8114') -> Config:
    # A devnet deploys the well known scripts in its genesis block: the dao in the first transaction, the secp256k1
    # dep group in the second one.
    t = pyickb.rpc.Rpc(url).get_block_by_number('0x0')['transactions']
    return Config('ckt', url, {
        ScriptName.DAO: script_conf(
            dao_code_hash,
            pyickb.core.script_hash_type_type,
            t[0]['hash'][2:],
            2,
            pyickb.core.dep_type_code,
        ),
        ScriptName.SECP256K1_BLAKE160: script_conf(
            secp256k1_blake160_code_hash,
            pyickb.core.script_hash_type_type,
            t[1]['hash'][2:],
            0,
            pyickb.core.dep_type_dep_group,
        ),
    })


def deploy(
    config: Config,
    script_data: typing.List[typing.Tuple[str, bytearray, bytearray, int]],
    commit: typing.Callable[[typing.List[pyickb.cell.Cell]], typing.List[pyickb.core.OutPoint]],
    lock: pyickb.cell.Script,
    kype: typing.Optional[pyickb.cell.Script] = None,
) -> Config:
    # Store each script binary in its own cell, then register every (name, data, code hash, hash type) entry as a
    # script whose code cell dep points to the committed cell.
    cells = [pyickb.cell.Cell(None, lock, kype, data) for _, data, _, _ in script_data]
    out_points = commit(cells)
    if len(out_points) != len(cells):
        raise pyickb.error.LengthMismatch(len(cells), len(out_points))
    script = dict(config.scripts)
    for (name, _, code_hash, hash_type), out_point in zip(script_data, out_points):
        log.info('deploy %s at 0x%s:%d', name, out_point.tx_hash.hex(), out_point.index)
        script[name] = pyickb.cell.Script(
            code_hash,
            hash_type,
            cell_deps=[pyickb.core.CellDep(out_point, pyickb.core.dep_type_code)],
        )
    return config.replace(script=script)


def create_dep_group(
    config: Config,
    names: typing.List[str],
    commit: typing.Callable[[typing.List[pyickb.cell.Cell]], typing.List[pyickb.core.OutPoint]],
    get_cell: typing.Callable[[pyickb.core.OutPoint], pyickb.cell.Cell],
    lock: pyickb.cell.Script,
    kype: typing.Optional[pyickb.cell.Script] = None,
) -> Config:
    # Collect the code out points of the named scripts, expanding existing dep groups, into a single dep group cell.
    # The named scripts are then rewired to depend only on it.
    codec = pyickb.molecule.Slice(pyickb.molecule.Custom(pyickb.core.OutPoint.molecule_size()))
    out_points: typing.Dict[pyickb.core.OutPoint, None] = {}
    for name in names:
        for dep in config.script(name).cell_deps:
            if dep.dep_type == pyickb.core.dep_type_code:
                out_points[dep.out_point] = None
                continue
            for e in codec.decode(get_cell(dep.out_point).data):
                out_points[pyickb.core.OutPoint.molecule_decode(e)] = None
    data = codec.encode([e.molecule() for e in out_points])
    cells = [pyickb.cell.Cell(None, lock, kype, data)]
    result = commit(cells)
    if len(result) != len(cells):
        raise pyickb.error.LengthMismatch(len(cells), len(result))
    log.info('create dep group of %s at 0x%s:%d', names, result[0].tx_hash.hex(), result[0].index)
    script = dict(config.scripts)
    dep = pyickb.core.CellDep(result[0], pyickb.core.dep_type_dep_group)
    for name in names:
        script[name] = config.script(name).replace(cell_deps=[dep])
    return config.replace(script=script)
