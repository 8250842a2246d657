"""
Field Extractor Tests
=====================

End-to-end decoding of precipitation product XML.
"""

import pytest

from conftest import precip_xml
from swim_relay.decode.extractor import (
    SCALAR_TEXT_CAP,
    FrameDecodeError,
    decode_precip,
    local_name,
)


class TestLocalName:
    def test_prefixed(self):
        assert local_name("itws:prcp_nrows") == "prcp_nrows"

    def test_plain(self):
        assert local_name("prcp_nrows") == "prcp_nrows"


class TestDecodePrecip:
    """Tests for decode_precip."""

    def test_sample_frame(self, sample_precip_xml):
        frame = decode_precip(sample_precip_xml.encode("utf-8"), 9850)

        assert frame is not None
        assert frame.product_id == 9850
        assert frame.product_name == "TRACON Precip"
        assert frame.site == "N90"
        assert frame.airport == "JFK"
        assert (frame.rows, frame.cols) == (3, 2)
        assert frame.trp_lat_micro_deg == 40639751
        assert frame.trp_lon_micro_deg == -73778925
        assert frame.rotation_milli_deg == 12500
        assert frame.compression == "RLE"
        assert frame.max_precip_level == 5
        assert frame.grid.tolist() == [5, 5, 5, 0, 0, 0]
        assert frame.filled_cells == 6
        assert frame.received_at.endswith("Z")

    @pytest.mark.parametrize("chunk_size", [1, 7, 64, 1024])
    def test_chunk_size_invariance(self, chunk_size):
        """Parser chunking never changes the decoded grid."""
        body = precip_xml(grid="1,2 2,2\n3,2 4,2 5,2 6,2", rows=4, cols=3).encode()
        frame = decode_precip(body, 9850, chunk_size=chunk_size)
        assert frame.grid.tolist() == [1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6]

    def test_wrong_product_id(self):
        body = precip_xml(product_id=9849).encode()
        assert decode_precip(body, 9850) is None

    def test_missing_dimension(self):
        body = precip_xml(cols=None).encode()
        assert decode_precip(body, 9850) is None

    def test_payload_before_dimensions(self):
        """Payload text seen before the buffer exists is lost."""
        body = precip_xml(grid_first=True).encode()
        frame = decode_precip(body, 9850)

        assert frame is not None
        assert frame.grid.tolist() == [0] * 6
        assert frame.filled_cells == 0

    def test_special_values_from_message(self):
        extra = (
            "<prcp_attenuated>1</prcp_attenuated>"
            "<prcp_ap_detected>2</prcp_ap_detected>"
        )
        body = precip_xml(grid="1,2 2,2 3,2", extra=extra).encode()
        frame = decode_precip(body, 9850)

        assert frame.special.attenuated == 1
        assert frame.special.ap_detected == 2
        assert frame.grid.tolist() == [0, 0, 0, 0, 3, 3]

    def test_scalar_text_capped(self):
        long_name = "A" * (SCALAR_TEXT_CAP + 100)
        body = precip_xml().replace("TRACON Precip", long_name).encode()
        frame = decode_precip(body, 9850)
        assert frame.product_name == "A" * SCALAR_TEXT_CAP

    def test_unprefixed_elements(self):
        body = precip_xml().replace("itws:", "").encode()
        frame = decode_precip(body, 9850)
        assert frame.grid.tolist() == [5, 5, 5, 0, 0, 0]

    def test_nested_elements(self):
        """Fields inside wrapper elements are still applied."""
        body = (
            "<prcp><header><product_msg_id>9850</product_msg_id></header>"
            "<grid><prcp_nrows>1</prcp_nrows><prcp_ncols>2</prcp_ncols>"
            "<prcp_grid_compressed>2,2</prcp_grid_compressed></grid></prcp>"
        ).encode()
        frame = decode_precip(body, 9850)
        assert frame.grid.tolist() == [2, 2]

    def test_malformed_xml(self):
        with pytest.raises(FrameDecodeError):
            decode_precip(b"<prcp><product_msg_id>9850</prcp>", 9850)

    def test_empty_body(self):
        assert decode_precip(b"", 9850) is None

    def test_truncated_body(self):
        body = precip_xml().encode()[:-20]
        with pytest.raises(FrameDecodeError):
            decode_precip(body, 9850)

    def test_overrunning_runs(self):
        body = precip_xml(grid="6,100").encode()
        frame = decode_precip(body, 9850)
        assert frame.grid.tolist() == [6] * 6
        assert frame.filled_cells == 6
