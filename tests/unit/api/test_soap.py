# tests/unit/api/test_soap.py
import base64
import json
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
import requests
from requests.adapters import HTTPAdapter

from colis_dashboard.api import soap as soap_mod
from colis_dashboard.api.soap import ColissimoSoapClient, SoapAuth, SoapConfig, TNS
from colis_dashboard.api.transport import RequestsTransport
from colis_dashboard.config.env import EnvError
from colis_dashboard.errors import ProviderError, TransportError, ValidationError
from colis_dashboard.models import EnvCfg, ParcelRecord

WSDL = Path(__file__).parent / "data" / "colissimo.wsdl"
SERVICE_URL = "https://ws.example.test/service.asmx"


def _soap_body(operation: str, result) -> str:
    text = result if isinstance(result, str) else json.dumps(result)
    text = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        f'<soap:Body><{operation}Response xmlns="{TNS}">'
        f"<{operation}Result>{text}</{operation}Result>"
        f"</{operation}Response></soap:Body></soap:Envelope>"
    )


def _local(tag):
    return tag.rsplit("}", 1)[-1]


class CannedAdapter(HTTPAdapter):
    """Answers each SOAP operation from a dict; records every request.

    An answer may be a result payload, a callable of the request params, or a
    `(status, raw_body)` tuple sent back verbatim.
    """

    def __init__(self, answers):
        super().__init__()
        self.answers = answers
        self.calls = []

    def send(self, request, **kwargs):
        root = ET.fromstring(request.body)
        header = next(el for el in root.iter() if _local(el.tag) == "Header")
        body = next(el for el in root.iter() if _local(el.tag) == "Body")
        op_el = list(body)[0]
        op = _local(op_el.tag)
        self.calls.append({
            "url": request.url,
            "headers": dict(request.headers),
            "op": op,
            "params": {_local(c.tag): c.text for c in op_el},
            "auth": {_local(c.tag): c.text for c in header.iter() if len(c) == 0},
        })

        answer = self.answers[op]
        if callable(answer):
            answer = answer(self.calls[-1]["params"])
        if isinstance(answer, tuple):
            status, text = answer
        else:
            status, text = 200, _soap_body(op, answer)

        resp = requests.Response()
        resp.status_code = status
        resp._content = text.encode("utf-8")
        resp.headers["Content-Type"] = "text/xml; charset=utf-8"
        resp.encoding = "utf-8"
        resp.url = request.url
        resp.request = request
        return resp


def _client(answers, user="user", password="secret"):
    transport = RequestsTransport(timeout=5, max_retries=0)
    adapter = CannedAdapter(answers)
    transport.session.mount("https://ws.example.test/", adapter)
    client = ColissimoSoapClient(
        SoapAuth(user, password),
        SoapConfig(str(WSDL)),
        transport=transport,
    )
    return client, adapter


def _ok(content):
    return {"result_type": "success", "result_code": "200", "result_content": content}


def test_wsdl_location_from_endpoint():
    assert SoapConfig("https://x.test/a.asmx").wsdl == "https://x.test/a.asmx?wsdl"
    assert SoapConfig("https://x.test/a.asmx?WSDL").wsdl == "https://x.test/a.asmx?WSDL"
    assert SoapConfig(" ").wsdl == ""


def test_list_parcels_returns_raw_result_mapping():
    client, adapter = _client({"ListeColis": _ok({"colis": [], "nbPages": "1"})})
    raw = client.list_parcels(2)
    assert json.loads(raw["ListeColisResult"])["result_type"] == "success"

    call = adapter.calls[0]
    assert call["url"] == SERVICE_URL
    assert call["params"] == {"page": "2"}
    assert "ListeColis" in call["headers"]["SOAPAction"]
    assert call["auth"] == {"Uilisateur": "user", "Pass": "secret"}


def test_soap_fault_becomes_provider_error():
    fault = (
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/"><soap:Body>'
        "<soap:Fault><faultcode>soap:Client</faultcode><faultstring>Bad auth</faultstring>"
        "</soap:Fault></soap:Body></soap:Envelope>"
    )
    client, _ = _client({"ListeColis": (500, fault)})
    with pytest.raises(ProviderError) as ei:
        client.list_parcels(1)
    assert ei.value.code == "soap:Client"
    assert "Bad auth" in str(ei.value)


def test_garbage_response_becomes_transport_error():
    client, _ = _client({"ListeColis": (502, "<html>502</html")})
    with pytest.raises(TransportError):
        client.list_parcels(1)


def test_missing_wsdl_is_transport_error(tmp_path):
    client = ColissimoSoapClient(SoapAuth("u", "p"), SoapConfig(str(tmp_path / "none.wsdl")),
                                 transport=RequestsTransport(max_retries=0))
    with pytest.raises(TransportError):
        client.list_parcels(1)


def test_get_parcel_maps_record():
    client, _ = _client({"getColis": _ok({"code": "C1", "client": "Amal", "etat": "Livré"})})
    rec = client.get_parcel("C1")
    assert isinstance(rec, ParcelRecord)
    assert rec.tracking_code == "C1"
    assert rec.status == "Livré"


def test_error_envelope_raises_provider_error():
    client, _ = _client({"SupprimerColis": {"result_type": "erreur", "result_code": "404",
                                            "result_content": "Colis introuvable"}})
    with pytest.raises(ProviderError) as ei:
        client.delete_parcel("C1")
    assert ei.value.code == "404"
    assert ei.value.message == "Colis introuvable"
    assert str(ei.value) == "404 - Colis introuvable"


def test_change_status_is_read_modify_write():
    current = {"code": "C1", "client": "Amal", "adresse": "x", "tel1": "1", "etat": "En Attente"}
    client, adapter = _client({
        "getColis": _ok(current),
        "ModifierColis": _ok("ok"),
    })
    client.change_status("C1", "A Enlever")
    ops = [c["op"] for c in adapter.calls]
    assert ops == ["getColis", "ModifierColis"]
    sent = json.loads(adapter.calls[1]["params"]["pic"])
    assert sent["etat"] == "A Enlever"
    assert sent["code_barre"] == "C1"
    assert sent["client"] == "Amal"


def test_create_parcel_validates_before_calling():
    client, adapter = _client({"AjouterColis": _ok("created")})
    with pytest.raises(ValidationError):
        client.create_parcel(ParcelRecord(client_name="A"))
    assert adapter.calls == []

    client.create_parcel(ParcelRecord(client_name="A", address="B", phone1="22000000"))
    sent = json.loads(adapter.calls[0]["params"]["pic"])
    assert sent["client"] == "A" and sent["type"] == "VO" and sent["nb_pieces"] == 1


def test_update_requires_tracking_code():
    client, adapter = _client({"ModifierColis": _ok("ok")})
    with pytest.raises(ValidationError):
        client.update_parcel(ParcelRecord(client_name="A", address="B", phone1="1"))
    assert adapter.calls == []


def test_blank_code_is_rejected():
    client, adapter = _client({})
    with pytest.raises(ValidationError):
        client.get_parcel("  ")
    assert adapter.calls == []


def test_unknown_operation_is_provider_error():
    client, adapter = _client({})
    with pytest.raises(ProviderError) as ei:
        client.call("RechercherColis", q="x")
    assert ei.value.code == "UNKNOWN_OPERATION"
    assert adapter.calls == []


def test_list_provinces_double_encoded():
    provinces = [{"gouvernorat": "Tunis", "villes": ["Tunis", "Carthage"]}]
    client, _ = _client({"listGouvernorats": _ok(json.dumps(provinces))})
    assert client.list_provinces() == provinces


def test_label_pdf_base64_and_error():
    pdf = b"%PDF-1.4 fake"
    client, _ = _client({"getColisPdf": base64.b64encode(pdf).decode("ascii")})
    assert client.get_label_pdf("C1") == pdf

    client, _ = _client({"getColisPdf": {"result_type": "erreur", "result_code": "E",
                                         "result_content": "no label"}})
    with pytest.raises(ProviderError):
        client.get_label_pdf("C1")


def test_missing_configuration_fails_closed():
    client, adapter = _client({}, user="", password="")
    with pytest.raises(EnvError):
        client.list_parcels(1)
    assert adapter.calls == []


def test_get_soap_client_is_memoized_after_wsdl_loads(tmp_path):
    soap_mod.clear_client_cache()
    bad = EnvCfg(COLISSIMO_SOAP_URL=str(tmp_path / "none.wsdl"),
                 COLISSIMO_USERNAME="u", COLISSIMO_PASSWORD="p")
    good = EnvCfg(COLISSIMO_SOAP_URL=str(WSDL),
                  COLISSIMO_USERNAME="u", COLISSIMO_PASSWORD="p")
    try:
        with pytest.raises(TransportError):
            soap_mod.get_soap_client(bad)
        a = soap_mod.get_soap_client(good)
        b = soap_mod.get_soap_client()
        assert a is b
        assert a.cfg.wsdl == str(WSDL)
    finally:
        soap_mod.clear_client_cache()


def test_from_env_does_not_retry_soap_faults():
    client = ColissimoSoapClient.from_env(EnvCfg(
        COLISSIMO_SOAP_URL="https://x.test/s.asmx", COLISSIMO_USERNAME="u",
        COLISSIMO_PASSWORD="p", COLISSIMO_TIMEOUT=12))
    retry = client.transport.session.get_adapter("https://x.test/s.asmx").max_retries
    assert 500 not in retry.status_forcelist
    assert 503 in retry.status_forcelist
    assert client.transport.timeout == 12
