"""
permit2_nft — signature-based transfers of non-fungible assets.

An owner signs an EIP-712 permit off-chain; any designated spender can later
present it to a `PermitValidator`, which checks deadline, requested ids,
replay protection and the signature before moving the items through a ledger.

Quick start
-----------
    from permit2_nft import (EIP712Domain, InMemoryNFTLedger, PermitTransferFrom,
                             PermitValidator, SignatureTransferDetails,
                             TokenPermission, sign_permit)

    domain = EIP712Domain("Permit2", 1, PERMIT2_ADDRESS)
    ledger = InMemoryNFTLedger(operator=PERMIT2_ADDRESS)
    validator = PermitValidator(ledger=ledger, domain=domain)

    permit = PermitTransferFrom(TokenPermission(token, 7), nonce=0, deadline=2**48)
    sig = sign_permit(permit, spender=spender, private_key=key, domain=domain)
    validator.permit_transfer_from(
        permit, SignatureTransferDetails(to=recipient, requested_amount=7),
        owner, sig, spender=spender,
    )
"""

from .config import PermitConfig, config_from_env, load_config
from .domain import DomainSeparatorCache, EIP712Domain
from .errors import (ErrorCode, InvalidAmount, InvalidContractSignature,
                     InvalidNonce, InvalidSignature, InvalidSignatureLength,
                     InvalidSigner, LedgerError, LengthMismatch, PermitError,
                     SignatureError, SignatureExpired)
from .events import EVT_UNORDERED_NONCE_INVALIDATION, Event, EventLog
from .hashing import hash_batch, hash_permit, hash_single, hash_token_permission
from .ledger import Checkpointable, InMemoryNFTLedger, Ledger
from .nonces import NonceRegistry, bitmap_positions
from .signature import (ERC1271_MAGIC_VALUE, ContractSigner,
                        SignatureVerifier, recover_signer)
from .signing import private_key_to_address, sign_digest, sign_permit, to_compact
from .types import (PermitBatchTransferFrom, PermitTransferFrom,
                    SignatureTransferDetails, TokenPermission,
                    TransferOutcome)
from .validator import PermitValidator
from .version import __version__

__all__ = [
    "__version__",
    # config
    "PermitConfig",
    "config_from_env",
    "load_config",
    # data model
    "TokenPermission",
    "PermitTransferFrom",
    "PermitBatchTransferFrom",
    "SignatureTransferDetails",
    "TransferOutcome",
    # hashing / domain
    "hash_token_permission",
    "hash_single",
    "hash_batch",
    "hash_permit",
    "EIP712Domain",
    "DomainSeparatorCache",
    # signatures
    "SignatureVerifier",
    "ContractSigner",
    "ERC1271_MAGIC_VALUE",
    "recover_signer",
    "private_key_to_address",
    "sign_digest",
    "sign_permit",
    "to_compact",
    # state
    "NonceRegistry",
    "bitmap_positions",
    "Ledger",
    "Checkpointable",
    "InMemoryNFTLedger",
    "Event",
    "EventLog",
    "EVT_UNORDERED_NONCE_INVALIDATION",
    # validator
    "PermitValidator",
    # errors
    "ErrorCode",
    "PermitError",
    "SignatureExpired",
    "InvalidAmount",
    "LengthMismatch",
    "InvalidNonce",
    "SignatureError",
    "InvalidSignatureLength",
    "InvalidSigner",
    "InvalidSignature",
    "InvalidContractSignature",
    "LedgerError",
]
