import logging
import pyickb.cell
import pyickb.config
import pyickb.core
import pyickb.dao
import pyickb.error
import pyickb.transaction
import typing

log = logging.getLogger(__name__)

Expander = typing.Callable[[pyickb.cell.Cell], typing.Optional[pyickb.cell.Script]]


def capacities_sifter(
    cells: typing.Iterable[pyickb.cell.Cell],
    account_lock_expander: Expander,
) -> typing.Tuple[typing.List[pyickb.cell.Cell], typing.List[pyickb.cell.Cell]]:
    owned = []
    unknowns = []
    for c in cells:
        if not pyickb.cell.is_capacity(c):
            unknowns.append(c)
            continue
        lock = account_lock_expander(c)
        if lock is None:
            unknowns.append(c)
            continue
        owned.append(c.replace(lock=lock))
    return owned, unknowns


def sudt_sifter(
    cells: typing.Iterable[pyickb.cell.Cell],
    sudt_type: pyickb.cell.Script,
    account_lock_expander: Expander,
) -> typing.Tuple[typing.List[pyickb.cell.Cell], typing.List[pyickb.cell.Cell]]:
    owned = []
    unknowns = []
    for c in cells:
        if not pyickb.cell.script_eq(c.kype, sudt_type):
            unknowns.append(c)
            continue
        lock = account_lock_expander(c)
        if lock is None:
            unknowns.append(c)
            continue
        owned.append(c.replace(lock=lock, kype=sudt_type))
    return owned, unknowns


def secp256k1_lock(config: pyickb.config.Config, args: bytearray) -> pyickb.cell.Script:
    assert len(args) == 20
    script = config.script(pyickb.config.ScriptName.SECP256K1_BLAKE160)
    return script.replace(args=args)


def secp256k1_witness_placeholder(
    tx: pyickb.transaction.Skeleton,
    config: pyickb.config.Config,
) -> pyickb.transaction.Skeleton:
    # Reserve room for a 65 bytes recoverable signature in the lock witness of the first input of each secp256k1
    # lock group, the signer overwrites it. Other inputs of the group keep an empty lock. Signatures already in
    # place are left alone.
    placeholder = bytearray(65)
    witnesses = list(tx.witnesses)
    groups = set()
    for i, c in enumerate(tx.inputs):
        if not pyickb.cell.script_is(c.lock, config, pyickb.config.ScriptName.SECP256K1_BLAKE160):
            continue
        first = bytes(c.lock.molecule()) not in groups
        groups.add(bytes(c.lock.molecule()))
        while len(witnesses) <= i:
            witnesses.append(pyickb.transaction.witness_padding)
        w = pyickb.core.WitnessArgs.molecule_decode(witnesses[i])
        if first and not w.lock:
            w.lock = placeholder
        elif not first and w.lock == placeholder:
            w.lock = bytearray()
        witnesses[i] = w.molecule()
    while witnesses and witnesses[-1] == pyickb.transaction.witness_padding:
        witnesses.pop()
    return tx.replace(witnesses=witnesses)


def lock_expander(lock: pyickb.cell.Script) -> Expander:
    def expander(cell: pyickb.cell.Cell) -> typing.Optional[pyickb.cell.Script]:
        return lock if pyickb.cell.script_eq(cell.lock, lock) else None
    return expander


def fund(
    tx: pyickb.transaction.Skeleton,
    capacities: typing.Iterable[pyickb.cell.Cell],
    change_lock: pyickb.cell.Script,
    fee_rate: int,
    config: pyickb.config.Config,
) -> pyickb.transaction.Skeleton:
    # Add capacity cells in the given order until they pay for the outputs, the fee and a change cell, then add the
    # change cell holding the whole surplus. Fees account for the secp256k1 signature placeholders.
    change = pyickb.cell.Cell(None, change_lock)
    delta = 0
    for c in [None] + list(capacities):
        if c is not None:
            tx = pyickb.transaction.add_cells(tx, 'append', [c], [])
        trial = pyickb.transaction.add_cells(tx, 'append', [], [change])
        delta = pyickb.dao.ckb_delta(secp256k1_witness_placeholder(trial, config), fee_rate, config)
        if delta >= 0:
            log.debug('fund with %d inputs, change %d', len(tx.inputs), change.capacity + delta)
            tx = pyickb.transaction.add_cells(tx, 'append', [], [change.replace(capacity=change.capacity + delta)])
            return secp256k1_witness_placeholder(tx, config)
    raise pyickb.error.InsufficientFunds(delta)
