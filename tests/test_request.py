import pytest

from fattree_sim.request import Request, is_cn_name


@pytest.mark.parametrize(
    "name,expected",
    [
        ("cn[0]", True),
        ("cn[12]", True),
        ("cn[]", False),
        ("cn", False),
        ("ost[1]", False),
        ("xcn[1]", False),
        ("cn[1]x", False),
    ],
)
def test_is_cn_name(name, expected):
    assert is_cn_name(name) is expected


def test_defaults():
    req = Request()
    assert req.finished is False
    assert req.ckp_launched is False
    assert req.data_size == 0
    assert req.byte_length == 0
    assert req.src_addr == ""


def test_dup_copies_all_fields():
    req = Request(work_type="r", id=7, data_size=1024, src_addr="cn[1]", byte_length=5)
    copy = req.dup()
    assert copy == req
    assert copy is not req


def test_dup_is_independent():
    req = Request(des_addr="ost[0]", byte_length=10)
    copy = req.dup()
    copy.des_addr = "ost[1]"
    copy.byte_length = 0
    assert req.des_addr == "ost[0]"
    assert req.byte_length == 10


def test_is_checkpoint():
    assert Request(master_id_addr="cn[4]").is_checkpoint() is True
    assert Request(master_id_addr="").is_checkpoint() is False
    assert Request(master_id_addr="oss[1]").is_checkpoint() is False