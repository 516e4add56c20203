# Nervos DAO: deposit, withdrawal request (phase 1) and withdrawal (phase 2).
# See https://github.com/nervosnetwork/rfcs/blob/master/rfcs/0023-dao-deposit-withdraw/0023-dao-deposit-withdraw.md
import functools
import logging
import pyickb.cell
import pyickb.config
import pyickb.core
import pyickb.epoch
import pyickb.error
import pyickb.molecule
import pyickb.transaction
import typing

log = logging.getLogger(__name__)

DEPOSIT_DATA = bytearray(8)
# A deposit is locked for whole cycles of 180 epochs.
LOCK_PERIOD_EPOCHS = 180
# Outputs limit of a transaction holding dao cells.
MAX_OUTPUTS = 64


def is_dao(cell: pyickb.cell.Cell, config: pyickb.config.Config) -> bool:
    return pyickb.cell.script_eq(cell.kype, config.script(pyickb.config.ScriptName.DAO))


def is_dao_deposit(cell: pyickb.cell.Cell, config: pyickb.config.Config) -> bool:
    return is_dao(cell, config) and cell.data == DEPOSIT_DATA


def is_dao_withdrawal_request(cell: pyickb.cell.Cell, config: pyickb.config.Config) -> bool:
    return is_dao(cell, config) and cell.data != DEPOSIT_DATA


def dao_earliest_since(deposit_epoch: pyickb.epoch.Epoch, withdraw_epoch: pyickb.epoch.Epoch) -> int:
    # The earliest since of a withdrawal: the first lock period boundary, counted from the deposit, that is not
    # before the withdrawal request.
    d = deposit_epoch
    w = withdraw_epoch
    deposited_epochs = w.number - d.number
    if w.index * d.length > d.index * w.length:
        deposited_epochs += 1
    lock_epochs = (deposited_epochs + LOCK_PERIOD_EPOCHS - 1) // LOCK_PERIOD_EPOCHS * LOCK_PERIOD_EPOCHS
    return pyickb.epoch.Epoch(d.number + lock_epochs, d.index, d.length).since()


def dao_maximum_withdraw(cell: pyickb.cell.Cell, deposit_dao: bytearray, withdraw_dao: bytearray) -> int:
    # Only the free capacity earns interest, scaled by the growth of the accumulated rate.
    occupied = cell.occupied_capacity()
    deposit_ar = pyickb.core.dao_decode(deposit_dao)[1]
    withdraw_ar = pyickb.core.dao_decode(withdraw_dao)[1]
    return (cell.capacity - occupied) * withdraw_ar // deposit_ar + occupied


def dao_sifter(
    cells: typing.Iterable[pyickb.cell.Cell],
    account_lock_expander: typing.Callable[[pyickb.cell.Cell], typing.Optional[pyickb.cell.Script]],
    get_header: typing.Callable[[int, pyickb.cell.Cell], pyickb.core.Header],
    config: pyickb.config.Config,
) -> typing.Tuple[typing.List[pyickb.cell.Cell], typing.List[pyickb.cell.Cell], typing.List[pyickb.cell.Cell]]:
    deposits = []
    withdrawal_requests = []
    not_daos = []
    dao = config.script(pyickb.config.ScriptName.DAO)
    for c in cells:
        lock = account_lock_expander(c)
        if lock is None or not is_dao(c, config):
            not_daos.append(c)
            continue
        if c.block_number is None:
            raise pyickb.error.MissingBlockNumber(c)
        header = get_header(c.block_number, c)
        if c.data == DEPOSIT_DATA:
            kype = dao.replace(header_deps=[header])
            deposits.append(c.replace(lock=lock, kype=kype, block_hash=header.hash()))
            continue
        deposit_header = get_header(pyickb.molecule.U64.decode(c.data), c)
        since = dao_earliest_since(
            pyickb.epoch.Epoch.decode(deposit_header.raw.epoch),
            pyickb.epoch.Epoch.decode(header.raw.epoch),
        )
        kype = dao.replace(header_deps=[header, deposit_header], since=since)
        withdrawal_requests.append(c.replace(lock=lock, kype=kype, block_hash=header.hash()))
    log.debug('sift %d deposits %d withdrawal requests', len(deposits), len(withdrawal_requests))
    return deposits, withdrawal_requests, not_daos


def dao_deposit(
    tx: pyickb.transaction.Skeleton,
    capacities: typing.Iterable[int],
    account_lock: pyickb.cell.Script,
    config: pyickb.config.Config,
) -> pyickb.transaction.Skeleton:
    dao = config.script(pyickb.config.ScriptName.DAO)
    deposits = [pyickb.cell.Cell(e, account_lock, dao, DEPOSIT_DATA) for e in capacities]
    return pyickb.transaction.add_cells(tx, 'append', [], deposits)


def dao_request_withdrawal_from(
    tx: pyickb.transaction.Skeleton,
    deposits: typing.Sequence[pyickb.cell.Cell],
    account_lock: pyickb.cell.Script,
) -> pyickb.transaction.Skeleton:
    # Each deposit is paired with a withdrawal request at the same index, as the dao script requires.
    withdrawal_requests = []
    for i, d in enumerate(deposits):
        if len(d.lock.args) != len(account_lock.args):
            raise pyickb.error.LockSizeMismatch(i, len(account_lock.args), len(d.lock.args))
        if d.block_number is None:
            raise pyickb.error.MissingBlockNumber(d)
        withdrawal_requests.append(pyickb.cell.Cell(
            d.capacity,
            d.lock,
            d.kype,
            pyickb.molecule.U64.encode(d.block_number),
        ))
    return pyickb.transaction.add_cells(tx, 'matched', deposits, withdrawal_requests)


def dao_withdraw_from(
    tx: pyickb.transaction.Skeleton,
    withdrawal_requests: typing.Sequence[pyickb.cell.Cell],
) -> pyickb.transaction.Skeleton:
    hashes = []
    for r in withdrawal_requests:
        hashes.extend([h.hash() for h in r.kype.header_deps])
    tx = pyickb.transaction.add_header_deps(tx, *hashes)

    header_index = {bytes(h): i for i, h in enumerate(tx.header_deps)}
    inputs = []
    for r in withdrawal_requests:
        deposit_header = r.kype.header_deps[-1]
        witness = pyickb.molecule.U64.encode(header_index[bytes(deposit_header.hash())])
        inputs.append(r.replace(kype=r.kype.replace(witness=witness)))
    return pyickb.transaction.add_cells(tx, 'append', inputs, [])


def withdrawal_epoch_estimation(
    deposit: pyickb.cell.Cell,
    withdrawal_request_epoch: pyickb.epoch.Epoch,
) -> pyickb.epoch.Epoch:
    deposit_epoch = pyickb.epoch.Epoch.decode(deposit.kype.header_deps[0].raw.epoch)
    return pyickb.epoch.since_decode(dao_earliest_since(deposit_epoch, withdrawal_request_epoch))


def withdrawal_amount_estimation(deposit: pyickb.cell.Cell, withdrawal_request_dao: bytearray) -> int:
    deposit_dao = deposit.kype.header_deps[0].raw.dao
    return dao_maximum_withdraw(deposit, deposit_dao, withdrawal_request_dao)


def dao_request_withdrawal_with(
    tx: pyickb.transaction.Skeleton,
    deposits: typing.Sequence[pyickb.cell.Cell],
    account_lock: pyickb.cell.Script,
    tip_header: pyickb.core.Header,
    max_amount: int,
    max_cells: typing.Optional[int] = None,
    min_locking: typing.Optional[pyickb.epoch.Epoch] = None,
    additional_max_locking: typing.Optional[pyickb.epoch.Epoch] = None,
) -> pyickb.transaction.Skeleton:
    # Request the withdrawal of deposits, earliest maturity first when min_locking is given, as long as the total
    # stays within max_amount. This is a greedy pass, it does not look for the best subset.
    candidates = [
        (d, withdrawal_amount_estimation(d, tip_header.raw.dao), None)
        for d in deposits if d.capacity <= max_amount
    ]

    if min_locking is not None:
        # Fast forward the tip by min_locking so that requests do not have to wait a whole extra lock period.
        request_epoch = pyickb.epoch.add(pyickb.epoch.Epoch.decode(tip_header.raw.epoch), min_locking)
        candidates = [
            (d, amount, withdrawal_epoch_estimation(d, request_epoch))
            for d, amount, _ in candidates if amount <= max_amount
        ]
        candidates.sort(key=functools.cmp_to_key(lambda a, b: pyickb.epoch.compare(a[2], b[2])))
        if additional_max_locking is not None:
            max_epoch = pyickb.epoch.add(request_epoch, additional_max_locking)
            candidates = [e for e in candidates if pyickb.epoch.compare(e[2], max_epoch) <= 0]

    amount = 0
    selected = []
    for d, withdrawal_amount, _ in candidates:
        if max_cells is not None and len(selected) >= max_cells:
            break
        if amount + withdrawal_amount > max_amount:
            continue
        amount += withdrawal_amount
        selected.append(d)
    log.debug('select %d deposits for %d shannons', len(selected), amount)

    if selected:
        tx = dao_request_withdrawal_from(tx, selected, account_lock)
    return tx


def ckb_delta(tx: pyickb.transaction.Skeleton, fee_rate: int, config: pyickb.config.Config) -> int:
    # Inputs minus outputs minus fee. Withdrawal requests are worth their maximum withdraw, not their capacity.
    delta = 0
    for c in tx.inputs:
        if is_dao_withdrawal_request(c, config):
            withdrawal_header, deposit_header = c.kype.header_deps
            delta += dao_maximum_withdraw(c, deposit_header.raw.dao, withdrawal_header.raw.dao)
        else:
            delta += c.capacity
    for c in tx.outputs:
        delta -= c.capacity
    # No fee is accounted when there are no outputs.
    if tx.outputs and fee_rate > 0:
        delta -= pyickb.transaction.calculate_fee(pyickb.transaction.tx_size(tx), fee_rate)
    return delta


def dao_check(
    tx: pyickb.transaction.Skeleton,
    fee_rate: int,
    config: pyickb.config.Config,
    tip_header: pyickb.core.Header,
    window: pyickb.epoch.Epoch = pyickb.epoch.Epoch(0, 0, 1),
) -> None:
    # Checks to run before handing the transaction to the signer.
    if len(tx.outputs) > MAX_OUTPUTS and any([is_dao(c, config) for c in tx.inputs + tx.outputs]):
        raise pyickb.error.TooManyOutputs(len(tx.outputs))
    delta = ckb_delta(tx, fee_rate, config)
    if delta != 0:
        raise pyickb.error.UnbalancedIO(delta)
    max_epoch = pyickb.epoch.add(pyickb.epoch.Epoch.decode(tip_header.raw.epoch), window)
    for i, c in enumerate(tx.inputs):
        if not is_dao_withdrawal_request(c, config):
            continue
        since = tx.input_sinces.get(i)
        if since is None or not pyickb.epoch.is_absolute_epoch_since(since):
            continue
        epoch = pyickb.epoch.since_decode(since)
        if pyickb.epoch.compare(epoch, max_epoch) > 0:
            raise pyickb.error.LateWithdrawal(i, epoch)
