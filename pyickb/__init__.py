import pyickb.molecule
import pyickb.denomination
import pyickb.error
import pyickb.core
import pyickb.epoch
import pyickb.cell
import pyickb.rpc
import pyickb.config
import pyickb.transaction
import pyickb.dao
import pyickb.utils
