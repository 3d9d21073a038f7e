"""
🛡 Warden, a static verifier for eBPF-style bytecode.

Every register is tracked in a flat constant lattice (⊤ or a known value)
until a fixpoint is reached; two oracles then decide admission.

| Layer                         | Purpose                                  | Status  |
<------------------------------ + ---------------------------------------- + -------->
| **Abstract domain**           | ⊤ / Known scalars, Unreached / Reachable |   ✅    |
| **Transfer functions**        | ALU, LDDW, CALL, branch narrowing        |   ✅    |
| **Safety oracles**            | Memory bounds, division by zero          |   ✅    |
| **Structural validation**     | Opcodes, registers, jump targets         |   ✅    |
| **Fixpoint driver**           | pc-ordered work-list over a NetworkX CFG |   ✅    |
| **Assembler**                 | ubpf textual syntax ⇄ instructions       |   ✅    |
| **Visualization**             | CFG coloured by verdict                  |   ✅    |
| **Admission certificates**    | Portable `.warden.json` proofs           |   ✅    |
| **Hash & diff**               | Certificate identity                     |   ✅    |
| **Logbook ledger**            | Signed admission records                 |   ✅    |
"""

from . import core as _core
from . import isa as _isa
from . import analysis as _analysis
from . import program as _program
from . import asm as _asm
from . import verifier as _verifier
from . import graph as _graph
from . import certificate as _certificate
from . import crypto as _crypto
from .cli import main, parse_args, run
from ..constants import KEY_FILE, LOGBOOK_FILE, PUB_FILE
from ..helpers import (
    HELPER_REGISTRY,
    HelperDeclaration,
    clear_helper_registry,
    get_registered_helpers,
    parse_inline_helpers,
    register_helpers,
)

from .core import *
from .isa import *
from .analysis import *
from .program import *
from .asm import *
from .verifier import *
from .graph import *
from .certificate import *
from .crypto import *

__all__ = []
for module in (_core, _isa, _analysis, _program, _asm, _verifier, _graph, _certificate, _crypto):
    __all__.extend(getattr(module, '__all__', []))
__all__ += ['main', 'parse_args', 'run', 'parse_inline_helpers', 'HELPER_REGISTRY', 'HelperDeclaration', 'clear_helper_registry', 'get_registered_helpers', 'register_helpers', 'KEY_FILE', 'LOGBOOK_FILE', 'PUB_FILE']
__all__ = list(dict.fromkeys(__all__))
