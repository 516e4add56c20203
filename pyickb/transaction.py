import logging
import pyickb.cell
import pyickb.core
import pyickb.epoch
import pyickb.error
import time
import typing

log = logging.getLogger(__name__)

fixed_entries_fields = ['cell_deps', 'header_deps', 'inputs', 'outputs']

# A witness holding only an empty lock. Trailing witnesses equal to it are dropped.
witness_padding = pyickb.core.WitnessArgs(bytearray(), None, None).molecule()


class Skeleton:
    # A transaction under construction. Entries of a field at an index lower or equal to its fixed entry are
    # committed: they are never moved, new entries are only placed after them.

    def __init__(
        self,
        inputs: typing.Iterable[pyickb.cell.Cell] = (),
        outputs: typing.Iterable[pyickb.cell.Cell] = (),
        cell_deps: typing.Iterable[pyickb.core.CellDep] = (),
        header_deps: typing.Iterable[bytearray] = (),
        input_sinces: typing.Optional[typing.Dict[int, int]] = None,
        witnesses: typing.Iterable[bytearray] = (),
        fixed_entries: typing.Iterable[typing.Tuple[str, int]] = (),
        signing_entries: typing.Iterable[typing.Any] = (),
    ) -> None:
        self.inputs = tuple(inputs)
        self.outputs = tuple(outputs)
        self.cell_deps = tuple(cell_deps)
        self.header_deps = tuple(header_deps)
        self.input_sinces = dict(input_sinces or {})
        self.witnesses = tuple(witnesses)
        self.fixed_entries = tuple(fixed_entries)
        self.signing_entries = tuple(signing_entries)

    def json(self) -> typing.Dict:
        return {
            'inputs': [e.json() for e in self.inputs],
            'outputs': [e.json() for e in self.outputs],
            'cell_deps': [e.json() for e in self.cell_deps],
            'header_deps': [e.hex() for e in self.header_deps],
            'input_sinces': self.input_sinces,
            'witnesses': [e.hex() for e in self.witnesses],
            'fixed_entries': [list(e) for e in self.fixed_entries],
            'signing_entries': len(self.signing_entries),
        }

    def replace(self, **kwargs: typing.Any) -> typing.Self:
        value = {
            'inputs': self.inputs,
            'outputs': self.outputs,
            'cell_deps': self.cell_deps,
            'header_deps': self.header_deps,
            'input_sinces': self.input_sinces,
            'witnesses': self.witnesses,
            'fixed_entries': self.fixed_entries,
            'signing_entries': self.signing_entries,
        }
        value.update(kwargs)
        return Skeleton(**value)

    def transaction(self) -> pyickb.core.Transaction:
        inputs = []
        for i, c in enumerate(self.inputs):
            assert c.out_point is not None
            inputs.append(pyickb.core.CellInput(self.input_sinces.get(i, 0), c.out_point))
        return pyickb.core.Transaction(pyickb.core.RawTransaction(
            0,
            list(self.cell_deps),
            list(self.header_deps),
            inputs,
            [c.output() for c in self.outputs],
            [c.data for c in self.outputs],
        ), list(self.witnesses))


class FixedEntries:
    def __init__(self, cell_deps: int = -1, header_deps: int = -1, inputs: int = -1, outputs: int = -1) -> None:
        self.cell_deps = cell_deps
        self.header_deps = header_deps
        self.inputs = inputs
        self.outputs = outputs

    def __eq__(self, other: object) -> bool:
        assert isinstance(other, FixedEntries)
        return all([
            self.cell_deps == other.cell_deps,
            self.header_deps == other.header_deps,
            self.inputs == other.inputs,
            self.outputs == other.outputs,
        ])

    def __repr__(self) -> str:
        return f'FixedEntries({self.cell_deps}, {self.header_deps}, {self.inputs}, {self.outputs})'


def parse_fixed_entries(tx: Skeleton) -> FixedEntries:
    # The boundary of a field is the highest index ever fixed for it.
    r = FixedEntries()
    for field, index in sorted(tx.fixed_entries, key=lambda e: e[1]):
        assert field in fixed_entries_fields
        setattr(r, field, index)
    return r


def add_fixed_entries(tx: Skeleton, *entries: typing.Tuple[str, int]) -> Skeleton:
    parsed = parse_fixed_entries(tx.replace(fixed_entries=tx.fixed_entries + entries))
    fixed_entries = []
    for field in fixed_entries_fields:
        index = getattr(parsed, field)
        if index >= 0:
            fixed_entries.append((field, index))
    return tx.replace(fixed_entries=fixed_entries)


def add_cell_deps(tx: Skeleton, *deps: pyickb.core.CellDep) -> Skeleton:
    # Duplicates are keyed by out point and dep type, the first occurrence keeps its place.
    cell_deps: typing.Dict[bytes, pyickb.core.CellDep] = {}
    for e in tx.cell_deps + deps:
        cell_deps.setdefault(bytes(e.molecule()), e)
    cell_deps = list(cell_deps.values())
    tx = add_fixed_entries(tx, ('cell_deps', len(cell_deps) - 1))
    return tx.replace(cell_deps=cell_deps)


def add_header_deps(tx: Skeleton, *hashes: bytearray) -> Skeleton:
    header_deps: typing.Dict[bytes, bytearray] = {}
    for e in tx.header_deps + hashes:
        header_deps.setdefault(bytes(e), bytearray(e))
    header_deps = list(header_deps.values())
    tx = add_fixed_entries(tx, ('header_deps', len(header_deps) - 1))
    return tx.replace(header_deps=header_deps)


def scripts_of(inputs: typing.Sequence[pyickb.cell.Cell], outputs: typing.Sequence[pyickb.cell.Cell]):
    # Scripts whose dependencies a transaction must carry: input locks, input types and output types. Output locks
    # are not run.
    for c in inputs:
        yield c.lock
    for c in list(inputs) + list(outputs):
        if c.kype is not None:
            yield c.kype


def add_cell_deps_from(
    tx: Skeleton,
    inputs: typing.Sequence[pyickb.cell.Cell],
    outputs: typing.Sequence[pyickb.cell.Cell],
) -> Skeleton:
    deps = []
    for s in scripts_of(inputs, outputs):
        deps.extend(getattr(s, 'cell_deps', ()))
    return add_cell_deps(tx, *deps)


def add_header_deps_from(
    tx: Skeleton,
    inputs: typing.Sequence[pyickb.cell.Cell],
    outputs: typing.Sequence[pyickb.cell.Cell],
) -> Skeleton:
    hashes = []
    for s in scripts_of(inputs, outputs):
        hashes.extend([h.hash() for h in getattr(s, 'header_deps', ())])
    return add_header_deps(tx, *hashes)


def since_merge(lock: typing.Optional[int], kype: typing.Optional[int]) -> typing.Optional[int]:
    # Both scripts ask for a time lock: the input must satisfy the stricter one.
    if lock is None:
        return kype
    if kype is None or lock == kype:
        return lock
    if lock >> 56 != kype >> 56:
        raise pyickb.error.IncompatibleSince(lock, kype)
    if pyickb.epoch.is_epoch_since(lock):
        c = pyickb.epoch.compare(pyickb.epoch.since_decode(lock), pyickb.epoch.since_decode(kype))
        return kype if c < 0 else lock
    # Block numbers and timestamps.
    return max(lock, kype)


def add_sinces_from(tx: Skeleton, splice: int, inputs: typing.Sequence[pyickb.cell.Cell]) -> Skeleton:
    sinces = [tx.input_sinces.get(i) for i in range(len(tx.inputs))]
    sinces[splice:splice] = [
        since_merge(getattr(c.lock, 'since', None), getattr(c.kype, 'since', None)) for c in inputs
    ]
    return tx.replace(input_sinces={i: e for i, e in enumerate(sinces) if e is not None})


def add_witnesses_from(
    tx: Skeleton,
    input_splice: int,
    inputs: typing.Sequence[pyickb.cell.Cell],
    output_splice: int,
    outputs: typing.Sequence[pyickb.cell.Cell],
) -> Skeleton:
    # Unfold the witnesses into lock, input type and output type columns. A missing witness is the padding.
    size = max(len(tx.inputs), len(tx.outputs), len(tx.witnesses), input_splice, output_splice)
    lock_ws = []
    input_type_ws = []
    output_type_ws = []
    for i in range(size):
        w = tx.witnesses[i] if i < len(tx.witnesses) else witness_padding
        a = pyickb.core.WitnessArgs.molecule_decode(w)
        lock_ws.append(a.lock)
        input_type_ws.append(a.input_type)
        output_type_ws.append(a.output_type)

    lock_ws[input_splice:input_splice] = [
        c.lock.witness if getattr(c.lock, 'witness', None) is not None else bytearray() for c in inputs
    ]
    input_type_ws[input_splice:input_splice] = [getattr(c.kype, 'witness', None) for c in inputs]
    output_type_ws[output_splice:output_splice] = [getattr(c.kype, 'witness', None) for c in outputs]

    # Fold them back, then trim the padding at the end.
    witnesses = []
    for i in range(max(len(input_type_ws), len(output_type_ws))):
        witnesses.append(pyickb.core.WitnessArgs(
            lock_ws[i] if i < len(lock_ws) else bytearray(),
            input_type_ws[i] if i < len(input_type_ws) else None,
            output_type_ws[i] if i < len(output_type_ws) else None,
        ).molecule())
    while witnesses and witnesses[-1] == witness_padding:
        witnesses.pop()
    return tx.replace(witnesses=witnesses)


def add_cells(
    tx: Skeleton,
    mode: str,
    inputs: typing.Sequence[pyickb.cell.Cell],
    outputs: typing.Sequence[pyickb.cell.Cell],
) -> Skeleton:
    # Splice cells into the skeleton together with their cell deps, header deps, sinces and witnesses.
    #
    # In matched mode inputs and outputs are paired one to one: they are placed right after the fixed inputs and
    # outputs, which must be aligned, and become fixed in turn. In append mode they go at the end and nothing is
    # fixed.
    assert mode in ['matched', 'append']
    inputs = list(inputs)
    outputs = list(outputs)
    fixed_entries = parse_fixed_entries(tx)

    if mode == 'matched':
        if len(inputs) != len(outputs):
            raise pyickb.error.LengthMismatch(len(inputs), len(outputs))
        if fixed_entries.inputs != fixed_entries.outputs:
            raise pyickb.error.FixedEntryMismatch(fixed_entries.inputs, fixed_entries.outputs)
        if len(tx.signing_entries) > 0:
            raise pyickb.error.NotEmptySigningState(len(tx.signing_entries))
        input_splice = fixed_entries.inputs + 1
        output_splice = fixed_entries.outputs + 1
    else:
        input_splice = len(tx.inputs)
        output_splice = len(tx.outputs)
    log.debug('add %d inputs at %d and %d outputs at %d', len(inputs), input_splice, len(outputs), output_splice)

    tx = add_cell_deps_from(tx, inputs, outputs)
    tx = add_header_deps_from(tx, inputs, outputs)
    tx = add_sinces_from(tx, input_splice, inputs)
    tx = add_witnesses_from(tx, input_splice, inputs, output_splice, outputs)

    tx_inputs = list(tx.inputs)
    tx_inputs[input_splice:input_splice] = inputs
    tx_outputs = list(tx.outputs)
    tx_outputs[output_splice:output_splice] = outputs
    tx = tx.replace(inputs=tx_inputs, outputs=tx_outputs)

    if mode == 'matched':
        tx = add_fixed_entries(
            tx,
            ('inputs', fixed_entries.inputs + len(inputs)),
            ('outputs', fixed_entries.outputs + len(outputs)),
        )
    return tx


def tx_size(tx: Skeleton) -> int:
    # 4 is the offset of the transaction inside the block serialization.
    return len(tx.transaction().molecule()) + 4


def calculate_fee(size: int, fee_rate: int) -> int:
    # Fee rate is in shannons per 1000 bytes, rounded up.
    return -(-size * fee_rate // 1000)


def send_and_wait(
    tx: pyickb.core.Transaction,
    send: typing.Callable[[pyickb.core.Transaction], bytearray],
    get_status: typing.Callable[[bytearray], str],
    interval: float = 1,
    timeout: float = 600,
) -> bytearray:
    tx_hash = send(tx)
    log.info('wait 0x%s', tx_hash.hex())
    attempts = max(1, int(timeout / interval) if interval > 0 else int(timeout))
    for i in range(attempts):
        status = get_status(tx_hash)
        if status == 'committed':
            return tx_hash
        if status not in ['pending', 'proposed']:
            raise pyickb.error.UnexpectedStatus(tx_hash, status)
        if i + 1 < attempts:
            time.sleep(interval)
    raise pyickb.error.Timeout(tx_hash, timeout)
