import base64
import json

import pytest

from caravo_agent.adapters.evm.constants import format_usdc, parse_caip2_chain_id, value_to_amount
from caravo_agent.adapters.evm.signatures import sign_payment
from caravo_agent.schemas.https import PaymentPayload, PaymentRequired, PaymentRequirements

from mocks import encode_header, make_identity, make_payment_required, make_requirements

BEYOND_FLOAT_PRECISION = "9007199254740993"  # 2**53 + 1


class TestPaymentRequired:

    def test_first_requirement(self):
        document = PaymentRequired.model_validate(make_payment_required())
        req = document.first_requirement()
        assert req.amount == "1000000"
        assert req.pay_to == make_requirements()["payTo"]
        assert req.max_timeout_seconds == 60

    def test_empty_accepts(self):
        assert PaymentRequired.model_validate({"x402Version": 2, "accepts": []}).first_requirement() is None

    def test_missing_accepts(self):
        assert PaymentRequired.model_validate({"error": "pay up"}).first_requirement() is None

    @pytest.mark.parametrize("field", ["amount", "payTo", "asset", "network", "maxTimeoutSeconds"])
    def test_entry_missing_field_is_unusable(self, field):
        entry = make_requirements()
        del entry[field]
        assert PaymentRequired.model_validate({"accepts": [entry]}).first_requirement() is None

    @pytest.mark.parametrize("amount", ["1.5", "-1", "", "abc"])
    def test_non_integer_amount_is_unusable(self, amount):
        entry = make_requirements(amount=amount)
        assert PaymentRequired.model_validate({"accepts": [entry]}).first_requirement() is None

    def test_only_first_entry_is_considered(self):
        broken = make_requirements()
        del broken["payTo"]
        document = PaymentRequired.model_validate({"accepts": [broken, make_requirements()]})
        assert document.first_requirement() is None

    def test_integer_amount_kept_exact(self):
        entry = json.loads(json.dumps(make_requirements()).replace('"1000000"', BEYOND_FLOAT_PRECISION))
        assert PaymentRequirements.model_validate(entry).amount == BEYOND_FLOAT_PRECISION

    def test_header_document_decodes(self):
        header = encode_header(make_payment_required())
        assert PaymentRequired.from_base64(header).first_requirement().network == "eip155:8453"

    def test_invalid_base64_raises_value_error(self):
        with pytest.raises(ValueError):
            PaymentRequired.from_base64("***not base64***")


class TestPaymentHeader:

    def test_header_preserves_large_amounts(self):
        req = PaymentRequirements.model_validate(make_requirements(amount=BEYOND_FLOAT_PRECISION))
        payment = sign_payment(req, make_identity())

        raw = json.loads(base64.b64decode(payment.to_header_value()))
        assert raw["accepted"]["amount"] == BEYOND_FLOAT_PRECISION
        assert raw["payload"]["authorization"]["value"] == BEYOND_FLOAT_PRECISION

        decoded = PaymentPayload.from_header_value(payment.to_header_value())
        assert decoded.payload.authorization.value == BEYOND_FLOAT_PRECISION

    def test_header_is_canonical_json(self):
        payment = sign_payment(PaymentRequirements.model_validate(make_requirements()), make_identity())
        raw = base64.b64decode(payment.to_header_value()).decode("utf-8")
        assert raw == json.dumps(json.loads(raw), separators=(",", ":"), sort_keys=True)

    def test_header_mapping(self):
        payment = sign_payment(PaymentRequirements.model_validate(make_requirements()), make_identity())
        assert payment.header() == {"X-PAYMENT": payment.to_header_value()}


class TestAcceptedEcho:

    @pytest.fixture
    def entry(self):
        entry = make_requirements(amount=1000000, extra=None, resourceHint="acme/echo")
        del entry["scheme"]
        return entry

    def test_wire_form_is_the_server_object(self, entry):
        req = PaymentRequired.model_validate({"accepts": [entry]}).first_requirement()
        assert req.scheme is None
        assert req.amount == "1000000"
        assert req.wire_form() == entry

    def test_wire_form_is_a_copy(self, entry):
        req = PaymentRequired.model_validate({"accepts": [entry]}).first_requirement()
        req.wire_form()["amount"] = 5
        entry["amount"] = 7
        assert req.wire_form()["amount"] == 1000000

    def test_proof_carries_server_object(self, entry):
        req = PaymentRequired.model_validate({"accepts": [entry]}).first_requirement()
        payment = sign_payment(req, make_identity())

        assert payment.to_dict()["accepted"] == entry
        raw = json.loads(base64.b64decode(payment.to_header_value()))
        assert raw["accepted"] == entry

    def test_requirement_built_locally_dumps_itself(self):
        req = PaymentRequirements.model_validate(make_requirements())
        assert req.wire_form() == make_requirements()


class TestChainConstants:

    @pytest.mark.parametrize("caip2, expected", [("eip155:8453", 8453), ("eip155-84532", 84532), (" eip155:1 ", 1)])
    def test_parse_caip2(self, caip2, expected):
        assert parse_caip2_chain_id(caip2) == expected

    def test_value_to_amount(self):
        assert str(value_to_amount(value=1_230_000, decimals=6)) == "1.23"

    @pytest.mark.parametrize("value, expected", [(1_000_000, "1.000000"), ("2500", "0.002500"), (0, "0.000000")])
    def test_format_usdc(self, value, expected):
        assert format_usdc(value) == expected

    def test_format_usdc_rejects_fractions(self):
        with pytest.raises(ValueError):
            format_usdc("1.5")
