import pytest

from core_utils import decode_guid, derive_edge_guid, derive_guid, generate_cycle_id, generate_request_id


def test_guid_is_urlsafe_base64_with_padding():
    assert derive_guid("?>?") == "Pz4_"
    assert derive_guid("a") == "YQ=="
    assert derive_guid("/data/in/report.csv") == derive_guid("/data/in/report.csv")


def test_distinct_names_give_distinct_guids():
    names = ["/d/a.csv", "/d/a.csv-connection", "/d/a.csv-endpoint", "/d/b.csv"]
    assert len({derive_guid(n) for n in names}) == len(names)


def test_decode_round_trips_unicode():
    name = "/data/überblick.txt"
    assert decode_guid(derive_guid(name)) == name


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode_guid("not base64!")


def test_empty_name_rejected():
    with pytest.raises(ValueError):
        derive_guid("")


def test_edge_guid_joins_ends_and_type():
    assert derive_edge_guid("AAA=", "ConnectionEndpoint", "BBB=") == derive_guid("AAA=::ConnectionEndpoint::BBB=")
    assert derive_edge_guid("x", "T", "y") != derive_edge_guid("y", "T", "x")


def test_cycle_and_request_ids():
    assert generate_cycle_id(3).startswith("c3-")
    assert generate_cycle_id() != generate_cycle_id()
    assert len(generate_request_id()) == 16
