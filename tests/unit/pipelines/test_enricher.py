from colis_dashboard.errors import TransportError
from colis_dashboard.models import EnrichmentFields, ParcelRecord
from colis_dashboard.pipelines.enricher import enrich


class Lookup:
    def __init__(self, answer=None, error=None):
        self.answer = answer or {}
        self.error = error
        self.calls = []

    def __call__(self, codes):
        self.calls.append(list(codes))
        if self.error is not None:
            raise self.error
        return self.answer


def test_absent_code_leaves_record_unchanged():
    rec = ParcelRecord(tracking_code="A", courier_name="Existing")
    out = enrich([rec], Lookup({}))
    assert out == [rec]
    assert out[0].courier_name == "Existing"


def test_lookup_failure_returns_primary():
    recs = [ParcelRecord(tracking_code="A"), ParcelRecord(tracking_code="B")]
    out = enrich(recs, Lookup(error=TransportError("down")))
    assert out == recs


def test_overlay_by_code_and_single_batched_call():
    recs = [
        ParcelRecord(tracking_code="A", status="Livré", courier_name="Old"),
        ParcelRecord(reference="no-code"),
        ParcelRecord(tracking_code="B"),
        ParcelRecord(tracking_code="A"),
    ]
    lookup = Lookup({
        "A": EnrichmentFields(courier_name="Karim", delivery_fee=7.0),
        "B": EnrichmentFields(last_anomaly_reason="Client absent"),
    })
    out = enrich(recs, lookup)

    assert lookup.calls == [["A", "B"]]
    assert out[0].courier_name == "Karim"
    assert out[0].delivery_fee == 7.0
    assert out[0].status == "Livré"
    assert out[1] == recs[1]
    assert out[2].last_anomaly_reason == "Client absent"
    assert out[3].courier_name == "Karim"


def test_none_values_never_overwrite():
    rec = ParcelRecord(tracking_code="A", courier_name="Keep", courier_phone="1")
    out = enrich([rec], Lookup({"A": EnrichmentFields(courier_phone="2")}))
    assert out[0].courier_name == "Keep"
    assert out[0].courier_phone == "2"


def test_no_codes_means_no_lookup():
    lookup = Lookup()
    recs = [ParcelRecord(reference="R")]
    assert enrich(recs, lookup) == recs
    assert lookup.calls == []


def test_id_only_record_is_not_looked_up():
    lookup = Lookup({"42": EnrichmentFields(courier_name="Karim")})
    recs = [ParcelRecord.from_provider({"id": "42", "reference": "R1"})]
    out = enrich(recs, lookup)
    assert lookup.calls == []
    assert out[0].courier_name is None


def test_plain_mapping_lookup_values_are_coerced():
    rec = ParcelRecord(tracking_code="A")
    out = enrich([rec], Lookup({"A": {"livreur": "Karim", "frais_retour": "4"}}))
    assert out[0].courier_name == "Karim"
    assert out[0].return_fee == 4.0


def test_unusable_lookup_value_keeps_record():
    recs = [ParcelRecord(tracking_code="A"), ParcelRecord(tracking_code="B")]
    out = enrich(recs, Lookup({"A": "garbage", "B": EnrichmentFields(courier_name="Sami")}))
    assert out[0] == recs[0]
    assert out[1].courier_name == "Sami"
