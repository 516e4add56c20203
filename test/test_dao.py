import pyickb
import pytest

config = pyickb.config.testnet
ckbytes = pyickb.denomination.ckbytes
Epoch = pyickb.epoch.Epoch
ar = 10 ** 16


def header(number: int, epoch: Epoch, ar: int) -> pyickb.core.Header:
    raw = pyickb.core.RawHeader(
        0, 0x1e015555, 0, number, epoch.encode(),
        bytearray(32), bytearray(32), bytearray(32), bytearray(32), pyickb.core.dao_encode(0, ar, 0, 0),
    )
    return pyickb.core.Header(raw, 0)


def out_point(n: int) -> pyickb.core.OutPoint:
    return pyickb.core.OutPoint(bytearray([n]) * 32, 0)


account = pyickb.utils.secp256k1_lock(config, bytearray([1]) * 20)
# Cells as the indexer returns them: plain scripts, no dependencies attached.
raw_lock = pyickb.cell.Script(account.code_hash, account.hash_type, account.args)
raw_dao = pyickb.cell.Script(config.script('dao').code_hash, config.script('dao').hash_type)
deposit_header = header(100, Epoch(5, 100, 1000), ar)
request_header = header(200, Epoch(10, 200, 1000), ar * 11 // 10)
headers = {100: deposit_header, 200: request_header}


def get_header(block_number: int, cell: pyickb.cell.Cell) -> pyickb.core.Header:
    return headers[block_number]


def raw_cells():
    deposit = pyickb.cell.Cell(1000 * ckbytes, raw_lock, raw_dao, pyickb.dao.DEPOSIT_DATA, out_point(1),
                               block_number=100)
    request = pyickb.cell.Cell(1000 * ckbytes, raw_lock, raw_dao, pyickb.molecule.U64.encode(100), out_point(2),
                               block_number=200)
    capacity = pyickb.cell.Cell(500 * ckbytes, raw_lock, out_point=out_point(3), block_number=150)
    return deposit, request, capacity


def sift():
    deposit, request, capacity = raw_cells()
    expander = pyickb.utils.lock_expander(account)
    return pyickb.dao.dao_sifter([capacity, request, deposit], expander, get_header, config)


def test_is_dao():
    deposit, request, capacity = raw_cells()
    assert pyickb.dao.is_dao_deposit(deposit, config)
    assert not pyickb.dao.is_dao_withdrawal_request(deposit, config)
    assert pyickb.dao.is_dao_withdrawal_request(request, config)
    assert not pyickb.dao.is_dao(capacity, config)


def test_dao_earliest_since():
    d = Epoch(5, 100, 1000)
    assert pyickb.dao.dao_earliest_since(d, Epoch(10, 200, 1000)) == Epoch(185, 100, 1000).since()
    assert pyickb.dao.dao_earliest_since(d, Epoch(185, 100, 1000)) == Epoch(185, 100, 1000).since()
    assert pyickb.dao.dao_earliest_since(d, Epoch(185, 101, 1000)) == Epoch(365, 100, 1000).since()
    assert pyickb.dao.dao_earliest_since(d, Epoch(185, 50, 500)) == Epoch(185, 100, 1000).since()


def test_dao_maximum_withdraw():
    deposit, _, _ = raw_cells()
    assert deposit.occupied_capacity() == 102 * ckbytes
    assert pyickb.dao.dao_maximum_withdraw(deposit, deposit_header.raw.dao, deposit_header.raw.dao) == 1000 * ckbytes
    assert pyickb.dao.dao_maximum_withdraw(deposit, deposit_header.raw.dao, request_header.raw.dao) == 108980000000


def test_dao_sifter():
    deposits, withdrawal_requests, not_daos = sift()
    assert [e.out_point for e in deposits] == [out_point(1)]
    assert [e.out_point for e in withdrawal_requests] == [out_point(2)]
    assert [e.out_point for e in not_daos] == [out_point(3)]

    d = deposits[0]
    assert d.lock is account
    assert d.kype.header_deps == (deposit_header,)
    assert d.kype.cell_deps == config.script('dao').cell_deps
    assert d.kype.since is None
    assert d.block_hash == deposit_header.hash()

    r = withdrawal_requests[0]
    assert r.kype.header_deps == (request_header, deposit_header)
    assert r.kype.since == Epoch(185, 100, 1000).since()
    assert r.block_hash == request_header.hash()


def test_dao_sifter_missing_block_number():
    deposit, _, _ = raw_cells()
    deposit = deposit.replace(block_number=None)
    with pytest.raises(pyickb.error.MissingBlockNumber):
        pyickb.dao.dao_sifter([deposit], pyickb.utils.lock_expander(account), get_header, config)


def test_dao_sifter_foreign_lock():
    deposit, _, _ = raw_cells()
    other = pyickb.utils.secp256k1_lock(config, bytearray([2]) * 20)
    deposits, withdrawal_requests, not_daos = pyickb.dao.dao_sifter(
        [deposit], pyickb.utils.lock_expander(other), get_header, config)
    assert (deposits, withdrawal_requests, len(not_daos)) == ([], [], 1)


def test_dao_deposit():
    tx = pyickb.dao.dao_deposit(pyickb.transaction.Skeleton(), [1000 * ckbytes, 2000 * ckbytes], account, config)
    assert [e.capacity for e in tx.outputs] == [1000 * ckbytes, 2000 * ckbytes]
    assert all([pyickb.dao.is_dao_deposit(e, config) for e in tx.outputs])
    assert list(tx.cell_deps) == list(config.script('dao').cell_deps)
    assert tx.inputs == ()


def test_dao_request_withdrawal_from():
    deposits, _, _ = sift()
    tx = pyickb.dao.dao_request_withdrawal_from(pyickb.transaction.Skeleton(), deposits, account)
    assert tx.inputs[0] is deposits[0]
    assert tx.outputs[0].data == pyickb.molecule.U64.encode(100)
    assert tx.outputs[0].capacity == 1000 * ckbytes
    assert pyickb.dao.is_dao_withdrawal_request(tx.outputs[0], config)
    assert list(tx.header_deps) == [deposit_header.hash()]
    assert list(tx.cell_deps) == [
        *config.script('secp256k1_blake160').cell_deps,
        *config.script('dao').cell_deps,
    ]
    fixed = pyickb.transaction.parse_fixed_entries(tx)
    assert (fixed.inputs, fixed.outputs) == (0, 0)


def test_dao_request_withdrawal_from_lock_size():
    deposits, _, _ = sift()
    deposits = [deposits[0], deposits[0].replace(out_point=out_point(4))]
    lock = config.script('secp256k1_blake160').replace(args=bytearray(21))
    with pytest.raises(pyickb.error.LockSizeMismatch) as e:
        pyickb.dao.dao_request_withdrawal_from(pyickb.transaction.Skeleton(), deposits, lock)
    assert (e.value.index, e.value.expect, e.value.actual) == (0, 21, 20)


def test_dao_withdraw_from():
    _, withdrawal_requests, _ = sift()
    tx = pyickb.dao.dao_withdraw_from(pyickb.transaction.Skeleton(), withdrawal_requests)
    assert list(tx.header_deps) == [request_header.hash(), deposit_header.hash()]
    assert tx.input_sinces == {0: Epoch(185, 100, 1000).since()}
    assert list(tx.witnesses) == [
        pyickb.core.WitnessArgs(bytearray(), pyickb.molecule.U64.encode(1), None).molecule(),
    ]


def test_ckb_delta():
    _, withdrawal_requests, _ = sift()
    tx = pyickb.dao.dao_withdraw_from(pyickb.transaction.Skeleton(), withdrawal_requests)
    assert pyickb.dao.ckb_delta(tx, 1000, config) == 108980000000
    tx = pyickb.transaction.add_cells(tx, 'append', [], [pyickb.cell.Cell(108980000000, account)])
    assert pyickb.dao.ckb_delta(tx, 0, config) == 0


def test_balance():
    _, _, capacity = raw_cells()
    capacity = capacity.replace(capacity=1000, lock=account)
    output = pyickb.cell.Cell(1000, account)
    tx = pyickb.transaction.add_cells(pyickb.transaction.Skeleton(), 'append', [capacity], [output])
    assert pyickb.dao.ckb_delta(tx, 0, config) == 0
    fee = pyickb.transaction.calculate_fee(pyickb.transaction.tx_size(tx), 1000)
    assert pyickb.dao.ckb_delta(tx, 1000, config) == -fee
    tip = header(300, Epoch(20, 0, 1000), ar)
    pyickb.dao.dao_check(tx, 0, config, tip)
    with pytest.raises(pyickb.error.UnbalancedIO) as e:
        pyickb.dao.dao_check(tx, 1000, config, tip)
    assert e.value.delta == -fee


def test_dao_check_too_many_outputs():
    tx = pyickb.dao.dao_deposit(pyickb.transaction.Skeleton(), [200 * ckbytes] * 65, account, config)
    with pytest.raises(pyickb.error.TooManyOutputs):
        pyickb.dao.dao_check(tx, 0, config, header(300, Epoch(20, 0, 1000), ar))


def test_dao_check_late_withdrawal():
    _, withdrawal_requests, _ = sift()
    tx = pyickb.dao.dao_withdraw_from(pyickb.transaction.Skeleton(), withdrawal_requests)
    tx = pyickb.transaction.add_cells(tx, 'append', [], [pyickb.cell.Cell(108980000000, account)])
    with pytest.raises(pyickb.error.LateWithdrawal) as e:
        pyickb.dao.dao_check(tx, 0, config, header(300, Epoch(100, 0, 1000), ar))
    assert e.value.index == 0
    pyickb.dao.dao_check(tx, 0, config, header(300, Epoch(185, 100, 1000), ar))
    pyickb.dao.dao_check(tx, 0, config, header(300, Epoch(184, 100, 1000), ar), Epoch(1, 0, 1))


def deposit_at(n: int, capacity: int, epoch: Epoch) -> pyickb.cell.Cell:
    h = header(n, epoch, ar)
    kype = config.script('dao').replace(header_deps=[h])
    return pyickb.cell.Cell(capacity, account, kype, pyickb.dao.DEPOSIT_DATA, out_point(n), h.hash(), n)


def test_dao_request_withdrawal_with():
    deposits = [
        deposit_at(10, 300 * ckbytes, Epoch(1, 0, 1000)),
        deposit_at(11, 500 * ckbytes, Epoch(1, 0, 1000)),
        deposit_at(12, 400 * ckbytes, Epoch(1, 0, 1000)),
        deposit_at(13, 900 * ckbytes, Epoch(1, 0, 1000)),
    ]
    tip = header(300, Epoch(20, 0, 1000), ar)
    tx = pyickb.dao.dao_request_withdrawal_with(pyickb.transaction.Skeleton(), deposits, account, tip, 800 * ckbytes)
    assert [e.capacity for e in tx.inputs] == [300 * ckbytes, 500 * ckbytes]
    assert sum([e.capacity for e in tx.outputs]) <= 800 * ckbytes
    tx = pyickb.dao.dao_request_withdrawal_with(
        pyickb.transaction.Skeleton(), deposits, account, tip, 800 * ckbytes, max_cells=1)
    assert [e.capacity for e in tx.inputs] == [300 * ckbytes]
    tx = pyickb.dao.dao_request_withdrawal_with(
        pyickb.transaction.Skeleton(), deposits, account, tip, 800 * ckbytes, max_cells=0)
    assert tx.inputs == ()
    tx = pyickb.dao.dao_request_withdrawal_with(
        pyickb.transaction.Skeleton(), deposits, account, tip, 100 * ckbytes)
    assert tx.inputs == ()


def test_dao_request_withdrawal_with_min_locking():
    late = deposit_at(10, 300 * ckbytes, Epoch(50, 0, 1000))
    early = deposit_at(11, 300 * ckbytes, Epoch(10, 0, 1000))
    tip = header(300, Epoch(100, 0, 1000), ar)
    tx = pyickb.dao.dao_request_withdrawal_with(
        pyickb.transaction.Skeleton(), [late, early], account, tip, 1000 * ckbytes, min_locking=Epoch(0, 0, 1))
    assert [e.block_number for e in tx.inputs] == [11, 10]
    assert pyickb.dao.withdrawal_epoch_estimation(early, Epoch(100, 0, 1000)) == Epoch(190, 0, 1000)
    assert pyickb.dao.withdrawal_epoch_estimation(late, Epoch(100, 0, 1000)) == Epoch(230, 0, 1000)
    tx = pyickb.dao.dao_request_withdrawal_with(
        pyickb.transaction.Skeleton(), [late, early], account, tip, 1000 * ckbytes,
        min_locking=Epoch(0, 0, 1), additional_max_locking=Epoch(100, 0, 1))
    assert [e.block_number for e in tx.inputs] == [11]


def test_withdrawal_amount_estimation():
    d = deposit_at(10, 1000 * ckbytes, Epoch(1, 0, 1000))
    assert pyickb.dao.withdrawal_amount_estimation(d, request_header.raw.dao) == 108980000000
