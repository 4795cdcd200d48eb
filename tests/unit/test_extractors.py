"""Unit tests for layout extractors.

Tests cover:
    - PipeInsulationExtractor: copper/iron records, dash cells skipped
    - FittingMatrixExtractor: fitting type from page name
    - MineralWoolPipeExtractor: LF/BOX sub-columns, '$' prices, footer stop
    - ElastomericPipeExtractor: List/NET blocks, derived discount
    - BoardExtractor: multi-product grouping, OEM header product
    - DuctLinerExtractor: marker sections, fallback single section
    - EXTRACTOR_REGISTRY lookup and UnsupportedLayout
"""
from decimal import Decimal

import pytest

from pricebook_ingest.errors import ExtractionError
from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.services.classification import FormatClassifier
from pricebook_ingest.services.extraction import (
    EXTRACTOR_REGISTRY,
    BoardExtractor,
    DuctLinerExtractor,
    ElastomericPipeExtractor,
    FittingMatrixExtractor,
    MineralWoolPipeExtractor,
    PipeInsulationExtractor,
    create_extractor,
    list_extractors,
    register_extractor,
)
from pricebook_ingest.services.extraction import registry
from pricebook_ingest.services.extraction.fitting_matrix import fitting_type_for
from tests.fixtures.grids import (
    BOARD_GRID,
    DUCT_LINER_GRID,
    ELASTOMERIC_GRID,
    FITTING_MATRIX_GRID,
    MINERAL_WOOL_GRID,
    MINERAL_WOOL_SIMPLE_GRID,
    OEM_BOARD_GRID,
    PIPE_INSULATION_GRID,
    SCENARIO_A_GRID,
    SCENARIO_B_GRID,
)


@pytest.fixture
def classifier():
    return FormatClassifier()


def _extract(classifier, extractor, grid, context):
    return extractor.extract(grid, classifier.classify(grid), context)


class TestPipeInsulationExtractor:
    """Tests for PipeInsulationExtractor."""

    def test_get_extractor_name(self):
        assert PipeInsulationExtractor().get_extractor_name() == "pipe-insulation"

    def test_scenario_a(self, classifier, sheet_context):
        """Two copper records; the iron column is '-' and yields nothing."""
        records = _extract(classifier, PipeInsulationExtractor(), SCENARIO_A_GRID, sheet_context())

        assert len(records) == 2
        assert [r.property_bag for r in records] == [
            {"pipeType": "copper", "pipeDiameter": '2"', "insulationThickness": '1/2"'},
            {"pipeType": "copper", "pipeDiameter": '2"', "insulationThickness": '3/4"'},
        ]
        assert [r.list_price for r in records] == [Decimal("12.50"), Decimal("15.00")]
        assert all(r.unit_of_measure == "FT" for r in records)

    def test_copper_and_iron_records(self, classifier, sheet_context):
        records = _extract(classifier, PipeInsulationExtractor(), PIPE_INSULATION_GRID, sheet_context())

        assert len(records) == 8
        iron = [r for r in records if r.property_bag["pipeType"] == "iron"]
        assert len(iron) == 4
        assert iron[0].sku == 'ML-I-1-4-1-2'

    def test_display_name(self, classifier, sheet_context):
        records = _extract(classifier, PipeInsulationExtractor(), SCENARIO_A_GRID, sheet_context())
        assert records[0].display_name == '2" Copper Pipe - 1/2" Insulation'

    def test_no_prices_raises(self, classifier, sheet_context):
        grid = [["COPPER", "IRON", '1"'], ['1"', "-", "-"]]
        with pytest.raises(ExtractionError) as exc_info:
            _extract(classifier, PipeInsulationExtractor(), grid, sheet_context())
        assert exc_info.value.kind == ExtractionError.NO_VALID_VARIANTS

    def test_missing_thickness_columns(self, sheet_context):
        classification = Classification(
            layout=LayoutTag.PIPE_INSULATION,
            header_row_index=0,
            data_start_row_index=1,
            header_columns=["COPPER", "IRON", "NOTES"],
        )
        with pytest.raises(ExtractionError) as exc_info:
            PipeInsulationExtractor().extract([["COPPER", "IRON", "NOTES"]], classification, sheet_context())
        assert exc_info.value.kind == ExtractionError.MISSING_COLUMNS


class TestFittingMatrixExtractor:
    """Tests for FittingMatrixExtractor."""

    @pytest.mark.parametrize("page_name,expected", [
        ("FIBERGLASS FITTING 45 DEGREE", "45-degree"),
        ("FIBERGLASS FITTING 90 DEGREE", "90-degree"),
        ("FIBERGLASS TEE", "tee"),
        ("FIBERGLASS FITTING", "45-degree"),
    ])
    def test_fitting_type_for(self, page_name, expected):
        assert fitting_type_for(page_name) == expected

    def test_extract(self, classifier, sheet_context):
        context = sheet_context("FIBERGLASS FITTING 90 DEGREE")
        records = _extract(classifier, FittingMatrixExtractor(), FITTING_MATRIX_GRID, context)

        assert len(records) == 4
        first = records[0]
        assert first.property_bag == {
            "pipeSize": "1/2",
            "wallThickness": "1/2",
            "fittingType": "90-degree",
        }
        assert first.list_price == Decimal("4.10")
        assert first.unit_of_measure == "EA"
        assert first.sku == "FIB-90-degree-12-12"


class TestMineralWoolPipeExtractor:
    """Tests for MineralWoolPipeExtractor."""

    def test_lf_box_layout(self, classifier, sheet_context):
        records = _extract(classifier, MineralWoolPipeExtractor(), MINERAL_WOOL_GRID, sheet_context())

        assert len(records) == 3
        assert records[0].property_bag == {"pipeDiameter": '1/2"', "insulationThickness": "1"}
        assert records[0].list_price == Decimal("3.10")
        assert records[0].extra_properties == {"lfPerBox": 48.0}
        assert records[1].property_bag["insulationThickness"] == "1-1/2"
        assert records[1].list_price == Decimal("4.20")

    def test_dl_rows_and_footer_skipped(self, classifier, sheet_context):
        records = _extract(classifier, MineralWoolPipeExtractor(), MINERAL_WOOL_GRID, sheet_context())
        assert all(r.property_bag["pipeDiameter"] != "DL" for r in records)
        assert Decimal("9.99") not in [r.list_price for r in records]

    def test_simple_layout_requires_currency(self, classifier, sheet_context):
        """Prices without '$' are not mineral wool prices."""
        records = _extract(classifier, MineralWoolPipeExtractor(), MINERAL_WOOL_SIMPLE_GRID, sheet_context())

        assert len(records) == 3
        prices = sorted(r.list_price for r in records)
        assert prices == [Decimal("2.10"), Decimal("3.40"), Decimal("3.90")]
        assert all(r.extra_properties == {} for r in records)


class TestElastomericPipeExtractor:
    """Tests for ElastomericPipeExtractor."""

    def test_extract_blocks(self, classifier, sheet_context):
        records = _extract(classifier, ElastomericPipeExtractor(), ELASTOMERIC_GRID, sheet_context())

        assert len(records) == 3
        first = records[0]
        assert first.property_bag == {
            "interiorDiameter": '1/4"',
            "copperTubeSize": '1/8"',
            "insulationThickness": '3/8"',
        }
        assert first.list_price == Decimal("2.10")
        assert first.net_price == Decimal("0.75")
        assert first.discount_percent == Decimal("64.29")
        assert first.extra_properties == {"lfPerCtn": 180.0}

    def test_sheet_discount_wins(self, classifier, sheet_context):
        context = sheet_context("ARMAFLEX PIPE INSULATION", discount=Decimal("64.30"))
        records = _extract(classifier, ElastomericPipeExtractor(), ELASTOMERIC_GRID, context)

        assert all(r.discount_percent == Decimal("64.30") for r in records)
        # Stated net prices are kept, missing ones are computed
        assert records[0].net_price == Decimal("0.75")
        assert records[2].net_price == Decimal("0.79")

    def test_missing_blocks(self, classifier, sheet_context):
        grid = [row[:] for row in ELASTOMERIC_GRID]
        grid[3] = ["", "", "", "", "", "", "", ""]
        with pytest.raises(ExtractionError) as exc_info:
            _extract(classifier, ElastomericPipeExtractor(), grid, sheet_context())
        assert exc_info.value.kind == ExtractionError.MISSING_COLUMNS


class TestBoardExtractor:
    """Tests for BoardExtractor."""

    def test_scenario_b(self, classifier, sheet_context):
        """Two products with 2 and 1 thickness variants."""
        records = _extract(classifier, BoardExtractor(), SCENARIO_B_GRID, sheet_context("FACED BOARD"))

        names = [r.product_name for r in records]
        assert names == ["1.5 LB. JM 1230", "1.5 LB. JM 1230", "3.0 LB. JM 1260"]
        assert records[0].property_bag == {
            "thickness": '1"',
            "density": "1.5 LB/CU.FT",
            "product_code": "JM 1230",
        }
        assert records[0].list_price == Decimal("81.60")
        assert records[0].extra_properties == {"sq_ft_per_bundle": 96.0}
        assert records[0].sku == "BOARD-JM1230-1"

    def test_price_from_sq_ft(self, classifier, sheet_context):
        """Without a bundle price, list = price per sq.ft x sq.ft."""
        grid = [row[:] for row in SCENARIO_B_GRID]
        grid[2] = ["", '1"', "96", "0.85", ""]
        records = _extract(classifier, BoardExtractor(), grid, sheet_context())
        assert records[0].list_price == Decimal("81.60")

    def test_footer_stops_extraction(self, classifier, sheet_context):
        grid = SCENARIO_B_GRID[:4] + [["Standard dimensions 48\" x 96\""], ["2.0 LB. JM 1240", "", "", "", ""]]
        records = _extract(classifier, BoardExtractor(), grid, sheet_context())
        assert {r.product_name for r in records} == {"1.5 LB. JM 1230"}

    def test_oem_header_product(self, classifier, sheet_context):
        records = _extract(classifier, BoardExtractor(), OEM_BOARD_GRID, sheet_context("OEM PRODUCTS"))

        assert [r.product_name for r in records] == [
            "JM 814 SPIN-GLAS", "JM 814 SPIN-GLAS", "JM 817 SPIN-GLAS",
        ]
        assert records[2].list_price == Decimal("120.00")
        assert records[2].property_bag["product_code"] == "JM 817"


class TestDuctLinerExtractor:
    """Tests for DuctLinerExtractor."""

    def test_sections(self, classifier, sheet_context):
        records = _extract(classifier, DuctLinerExtractor(), DUCT_LINER_GRID, sheet_context("DUCT LINER"))

        assert [r.product_name for r in records] == [
            "JM LINACOUSTIC RC", "JM LINACOUSTIC RC", "JM DUCT LINER PM",
        ]
        first = records[0]
        assert first.property_bag == {
            "thickness": '1"',
            "dimensions": "48\" X 100'",
            "product_type": "rc",
        }
        assert first.list_price == Decimal("380.00")
        assert first.unit_of_measure == "ROLL"
        assert first.extra_properties == {"sq_ft_per_roll": 400.0}
        assert first.sku == "DUCT-RC-1-48X100"

    def test_find_sections(self, classifier):
        classification = classifier.classify(DUCT_LINER_GRID)
        sections = DuctLinerExtractor().find_sections(DUCT_LINER_GRID, classification)
        assert [(s.marker.type_code, s.start) for s in sections] == [("rc", 2), ("pm", 6)]

    def test_fallback_single_section(self, classifier, sheet_context):
        """Sheets without known markers become one section named after the page."""
        grid = [
            ["ROLL THICKNESS", "ROLL DIMENSIONS", "SQ.FT. PER ROLL", "PRICE PER ROLL"],
            ['1"', "36\" X 50'", "150", "95.00"],
            ['2"', "36\" X 25'", "75", "95.00"],
        ]
        records = _extract(classifier, DuctLinerExtractor(), grid, sheet_context("DUCT WRAP"))

        assert len(records) == 2
        assert {r.product_name for r in records} == {"DUCT WRAP"}
        assert records[0].property_bag["product_type"] == "duct-wrap"


class TestExtractorRegistry:
    """Tests for EXTRACTOR_REGISTRY and create_extractor."""

    def test_registry_covers_six_layouts(self):
        assert len(EXTRACTOR_REGISTRY) == 6
        assert set(list_extractors()) == {
            "pipe-insulation", "fitting-matrix", "mineral-wool-pipe",
            "elastomeric-pipe-insulation", "board", "duct-liner",
        }

    def test_create_extractor(self):
        assert isinstance(create_extractor(LayoutTag.BOARD), BoardExtractor)

    @pytest.mark.parametrize("layout", [LayoutTag.GENERIC_MATRIX, LayoutTag.SIMPLE_TABLE])
    def test_unsupported_layout(self, layout):
        with pytest.raises(ExtractionError) as exc_info:
            create_extractor(layout)
        assert exc_info.value.kind == ExtractionError.UNSUPPORTED_LAYOUT

    def test_register_extractor(self, monkeypatch):
        """A registered extractor serves a previously unsupported layout."""
        monkeypatch.setattr(registry, "EXTRACTOR_REGISTRY", dict(EXTRACTOR_REGISTRY))
        register_extractor(LayoutTag.SIMPLE_TABLE, BoardExtractor)
        assert isinstance(create_extractor(LayoutTag.SIMPLE_TABLE), BoardExtractor)
