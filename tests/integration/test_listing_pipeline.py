import json

from colis_dashboard import enrich, fetch_all_pages, search
from colis_dashboard.api.rest import ColissimoRestClient, RestAuth
from colis_dashboard.rules.stats import status_counts


def _page(rows, nb_pages):
    return {"ListeColisResult": json.dumps(json.dumps({
        "resultType": "succes",
        "resultContent": {"colis": rows, "nbPages": nb_pages},
    }))}


class RestTransport:
    def __init__(self):
        self.bodies = []

    def post_json(self, url, payload):
        self.bodies.append(payload)
        return json.dumps({"result_type": "success", "result_content": {"colis": [
            {"code": "C2", "livreur": "Karim", "tel_livreur": "98111222",
             "dern_anomalie": "Client absent", "frais_retour": 4},
        ]}})


def test_aggregate_enrich_and_search():
    pages = {
        1: _page([{"code": "C1", "client": "Amal", "etat": "Livré"},
                  {"code": "C2", "client": "Ali Ben Salah", "etat": "Anomalie de Livraison"}], 2),
        2: _page([{"code": "C3", "client": "Salma", "etat": None}], 2),
    }
    listing = fetch_all_pages(lambda n: pages[n])
    assert [r.tracking_code for r in listing.records] == ["C1", "C2", "C3"]

    transport = RestTransport()
    rest = ColissimoRestClient(RestAuth("u", "p"), transport=transport)
    records = enrich(listing.records, rest.list_by_codes)
    assert transport.bodies[0]["codeBar"] == "C1;C2;C3"

    found = search(records, "sal", "client")
    assert [r.tracking_code for r in found] == ["C2", "C3"]
    assert found[0].courier_name == "Karim"
    assert found[0].return_fee == 4.0
    assert found[1].courier_name is None

    assert status_counts(records) == {"Livré": 1, "Anomalie de Livraison": 1, "Unknown": 1}
