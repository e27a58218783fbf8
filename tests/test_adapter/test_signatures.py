"""
ERC-3009 Payment Signing Test Suite

Tests for ``sign_payment`` and the typed-data helpers:
- Validity window and nonce generation
- Deterministic output for a fixed nonce and clock
- Signer recovery against an independently built EIP-712 digest
- Rejection of requirements that cannot be signed
- Verification failing closed on malformed proofs
"""

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address

from caravo_agent.adapters.evm.signatures import create_nonce, sign_payment
from caravo_agent.adapters.evm.verifies import recover_payment_signer, verify_payment_signature
from caravo_agent.engine.exceptions import PaymentSignatureError
from caravo_agent.schemas.https import PaymentRequirements

from mocks import (
    FIXED_NONCE,
    FIXED_NOW,
    OWNER_ADDRESS,
    PAYEE_ADDRESS,
    USDC_BASE,
    make_identity,
    make_requirements,
)


def requirement(**overrides):
    return PaymentRequirements.model_validate(make_requirements(**overrides))


def reference_digest(payment, name="USD Coin", version="2", chain_id=8453):
    """EIP-712 message for ``payment`` built by hand from the ERC-3009 definition."""
    auth = payment.payload.authorization
    return encode_typed_data(full_message={
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "TransferWithAuthorization": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "validAfter", "type": "uint256"},
                {"name": "validBefore", "type": "uint256"},
                {"name": "nonce", "type": "bytes32"},
            ],
        },
        "primaryType": "TransferWithAuthorization",
        "domain": {
            "name": name,
            "version": version,
            "chainId": chain_id,
            "verifyingContract": USDC_BASE,
        },
        "message": {
            "from": auth.from_,
            "to": auth.to,
            "value": int(auth.value),
            "validAfter": int(auth.valid_after),
            "validBefore": int(auth.valid_before),
            "nonce": bytes.fromhex(auth.nonce[2:]),
        },
    })


@pytest.fixture
def identity():
    return make_identity()


class TestNonce:

    def test_nonce_is_32_bytes_hex(self):
        nonce = create_nonce()
        assert nonce.startswith("0x")
        assert len(nonce) == 66
        int(nonce, 16)

    def test_every_payment_gets_a_fresh_nonce(self, identity):
        first = sign_payment(requirement(), identity)
        second = sign_payment(requirement(), identity)
        assert first.payload.authorization.nonce != second.payload.authorization.nonce


class TestValidityWindow:

    def test_window_is_backdated_and_bounded_by_timeout(self, identity):
        auth = sign_payment(requirement(maxTimeoutSeconds=60), identity, now=FIXED_NOW).payload.authorization
        assert int(auth.valid_after) == FIXED_NOW - 60
        assert int(auth.valid_before) == FIXED_NOW + 60

    def test_window_width_is_timeout_plus_skew(self, identity):
        auth = sign_payment(requirement(maxTimeoutSeconds=300), identity).payload.authorization
        assert int(auth.valid_before) - int(auth.valid_after) == 360

    def test_zero_timeout_is_signed_as_expired(self, identity):
        auth = sign_payment(requirement(maxTimeoutSeconds=0), identity, now=FIXED_NOW).payload.authorization
        assert int(auth.valid_before) == FIXED_NOW
        assert int(auth.valid_after) < int(auth.valid_before)


class TestPaymentPayload:

    def test_fields_are_decimal_strings(self, identity):
        auth = sign_payment(requirement(), identity, now=FIXED_NOW).payload.authorization
        for value in (auth.value, auth.valid_after, auth.valid_before):
            assert isinstance(value, str)
            assert value.isdigit()
        assert auth.value == "1000000"

    def test_addresses_are_checksummed(self, identity):
        auth = sign_payment(requirement(), identity).payload.authorization
        assert auth.from_ == OWNER_ADDRESS
        assert auth.to == to_checksum_address(PAYEE_ADDRESS)

    def test_signature_is_65_bytes_hex(self, identity):
        signature = sign_payment(requirement(), identity).payload.signature
        assert signature.startswith("0x")
        assert len(signature) == 2 + 130

    def test_fixed_nonce_and_clock_are_deterministic(self, identity):
        first = sign_payment(requirement(), identity, nonce=FIXED_NONCE, now=FIXED_NOW)
        second = sign_payment(requirement(), identity, nonce=FIXED_NONCE, now=FIXED_NOW)
        assert first.payload.signature == second.payload.signature
        assert first.to_dict() == second.to_dict()

    def test_proof_echoes_requirement(self, identity):
        req = requirement(resourceHint="acme/echo")
        wire = sign_payment(req, identity).to_dict()

        assert wire["x402Version"] == 2
        assert wire["accepted"]["payTo"] == PAYEE_ADDRESS
        assert wire["accepted"]["resourceHint"] == "acme/echo"
        assert set(wire["payload"]["authorization"]) == {
            "from", "to", "value", "validAfter", "validBefore", "nonce",
        }


class TestSignerRecovery:

    def test_end_to_end_scenario_recovers_identity(self, identity):
        req = requirement(amount="1000000", network="eip155:8453", maxTimeoutSeconds=60)
        payment = sign_payment(req, identity, nonce=FIXED_NONCE, now=FIXED_NOW)

        signer = Account.recover_message(reference_digest(payment), signature=payment.payload.signature)
        assert signer == identity.address

    def test_recover_helper_matches_reference(self, identity):
        payment = sign_payment(requirement(), identity)
        assert recover_payment_signer(payment) == identity.address
        assert verify_payment_signature(payment)

    def test_missing_token_metadata_uses_usdc_domain(self, identity):
        req = requirement()
        req.extra = None
        payment = sign_payment(req, identity)

        signer = Account.recover_message(reference_digest(payment), signature=payment.payload.signature)
        assert signer == identity.address

    def test_custom_token_metadata_changes_domain(self, identity):
        payment = sign_payment(requirement(extra={"name": "Bridged USDC", "version": "1"}), identity)

        assert verify_payment_signature(payment)
        default_domain_signer = Account.recover_message(
            reference_digest(payment), signature=payment.payload.signature
        )
        assert default_domain_signer != identity.address

    def test_tampered_value_fails_verification(self, identity):
        payment = sign_payment(requirement(), identity)
        payment.payload.authorization.value = "2000000"
        assert not verify_payment_signature(payment)

    def test_chain_id_is_bound(self, identity):
        payment = sign_payment(requirement(network="eip155:84532"), identity)
        assert verify_payment_signature(payment)
        assert Account.recover_message(
            reference_digest(payment, chain_id=8453), signature=payment.payload.signature
        ) != identity.address


class TestSigningErrors:

    @pytest.mark.parametrize("network", ["solana:mainnet", "eip155", "eip155:abc", "eip155:0"])
    def test_unsupported_network(self, identity, network):
        with pytest.raises(PaymentSignatureError):
            sign_payment(requirement(network=network), identity)

    def test_malformed_payee(self, identity):
        with pytest.raises(PaymentSignatureError):
            sign_payment(requirement(payTo="not-an-address"), identity)

    def test_malformed_asset(self, identity):
        with pytest.raises(PaymentSignatureError):
            sign_payment(requirement(asset="0x1234"), identity)

    def test_unusable_identity_secret(self):
        broken = make_identity().model_copy(update={"secret": "0x1234"})
        with pytest.raises(PaymentSignatureError):
            sign_payment(requirement(), broken)

    def test_amount_beyond_uint256(self, identity):
        with pytest.raises(PaymentSignatureError, match="uint256"):
            sign_payment(requirement(amount=str(2 ** 256)), identity)

    def test_largest_uint256_amount_is_signed(self, identity):
        payment = sign_payment(requirement(amount=str(2 ** 256 - 1)), identity)
        assert verify_payment_signature(payment)

    def test_window_ending_before_epoch(self, identity):
        with pytest.raises(PaymentSignatureError, match="validBefore"):
            sign_payment(requirement(maxTimeoutSeconds=-(2 ** 40)), identity, now=FIXED_NOW)


class TestVerificationFailures:

    @pytest.fixture
    def payment(self, identity):
        return sign_payment(requirement(), identity, nonce=FIXED_NONCE, now=FIXED_NOW)

    def test_truncated_signature(self, payment):
        payment.payload.signature = payment.payload.signature[:-4]
        assert verify_payment_signature(payment) is False

    def test_signature_not_hex(self, payment):
        payment.payload.signature = "0xzz"
        assert verify_payment_signature(payment) is False

    def test_value_beyond_uint256(self, payment):
        payment.payload.authorization.value = str(2 ** 256)
        assert verify_payment_signature(payment) is False

    def test_unknown_network(self, payment):
        payment.accepted.network = "solana:mainnet"
        assert verify_payment_signature(payment) is False
