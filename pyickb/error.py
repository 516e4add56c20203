import typing


class Error(Exception):
    """Base class of every failure raised by pyickb."""


class InvalidComparison(Error):
    def __init__(self) -> None:
        super().__init__('comparing two scripts that are both undefined')


class MissingBlockNumber(Error):
    def __init__(self, cell: typing.Any) -> None:
        self.cell = cell
        super().__init__(f'cell {cell} has no block number')


class LockSizeMismatch(Error):
    def __init__(self, index: int, expect: int, actual: int) -> None:
        self.index = index
        self.expect = expect
        self.actual = actual
        super().__init__(f'deposit {index} has lock args of {actual} bytes, account lock has {expect}')


class LengthMismatch(Error):
    def __init__(self, expect: int, actual: int) -> None:
        self.expect = expect
        self.actual = actual
        super().__init__(f'expected {expect} entries, got {actual}')


class FixedEntryMismatch(Error):
    def __init__(self, inputs: int, outputs: int) -> None:
        self.inputs = inputs
        self.outputs = outputs
        super().__init__(f'fixed inputs boundary {inputs} differs from fixed outputs boundary {outputs}')


class NotEmptySigningState(Error):
    def __init__(self, size: int) -> None:
        self.size = size
        super().__init__(f'{size} signing entries are pending')


class InsufficientFunds(Error):
    def __init__(self, delta: int) -> None:
        self.delta = delta
        super().__init__(f'funding sources are short of {-delta} shannons')


class TooManyOutputs(Error):
    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f'dao transaction has {count} outputs, at most 64 are allowed')


class UnbalancedIO(Error):
    def __init__(self, delta: int) -> None:
        self.delta = delta
        super().__init__(f'inputs and outputs differ by {delta} shannons')


class LateWithdrawal(Error):
    def __init__(self, index: int, epoch: typing.Any) -> None:
        self.index = index
        self.epoch = epoch
        super().__init__(f'withdrawal request at input {index} matures at epoch {epoch}, beyond the allowed window')


class ZeroEpochLength(Error):
    def __init__(self, epoch: typing.Any) -> None:
        self.epoch = epoch
        super().__init__(f'epoch {epoch} has length zero')


class IncompatibleSince(Error):
    def __init__(self, lock: int, kype: int) -> None:
        self.lock = lock
        self.kype = kype
        super().__init__(f'lock since {lock:#x} and type since {kype:#x} can not be merged')


class ScriptNotFound(Error):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'script {name} not found in config')


class UnexpectedStatus(Error):
    def __init__(self, tx_hash: bytearray, status: str) -> None:
        self.tx_hash = tx_hash
        self.status = status
        super().__init__(f'transaction 0x{tx_hash.hex()} has unexpected status {status}')


class Timeout(Error):
    def __init__(self, tx_hash: bytearray, seconds: float) -> None:
        self.tx_hash = tx_hash
        self.seconds = seconds
        super().__init__(f'transaction 0x{tx_hash.hex()} not committed after {seconds} seconds')


class RpcError(Error):
    def __init__(self, method: str, error: typing.Any) -> None:
        self.method = method
        self.error = error
        super().__init__(f'{method}: {error}')
