import pikepdf
import pytest
from pikepdf import Dictionary, Name, String

from acroform_fixup.acroform_defaults import DEFAULT_APPEARANCE, AcroFormDefaultsProcessor, harvest_widget_fonts
from acroform_fixup.fixup import (
    CREATE_FROM_ANNOTATIONS,
    DEFAULT_CORRECTION,
    NO_CORRECTION,
    CustomCorrection,
    DefaultCorrection,
    NoCorrection,
    apply_fixup,
    fixup_from_name,
)
from acroform_fixup.form_accessor import get_form
from acroform_fixup.tests.utils.form_builders import (
    add_page,
    build_scenario_pdf,
    make_field,
    make_widget,
    new_form_pdf,
)


def test_no_correction_leaves_document_untouched():
    pdf, _ = build_scenario_pdf(declare_fields=False)
    with pdf:
        tree = get_form(pdf, NO_CORRECTION)

        assert tree.roots == []
        assert tree.has_acroform
        assert "/DA" not in pdf.Root.AcroForm
        assert "/DR" not in pdf.Root.AcroForm
        assert len(pdf.Root.AcroForm.Fields) == 0


def test_no_correction_reports_declared_roots_only():
    pdf, _ = build_scenario_pdf(declare_fields=True)
    with pdf:
        tree = get_form(pdf, NO_CORRECTION)

        assert len(tree.roots) == len(pdf.Root.AcroForm.Fields) == 3


def test_default_correction_never_creates_fields():
    pdf, _ = build_scenario_pdf(declare_fields=False)
    with pdf:
        tree = get_form(pdf, DEFAULT_CORRECTION)

        assert tree.roots == []
        assert len(pdf.Root.AcroForm.Fields) == 0
        assert str(pdf.Root.AcroForm.DA) == DEFAULT_APPEARANCE
        fonts = pdf.Root.AcroForm.DR.Font
        assert fonts.Helv.BaseFont == Name("/Helvetica")
        assert fonts.ZaDb.BaseFont == Name("/ZapfDingbats")


def test_none_selects_the_default_correction():
    pdf, _ = build_scenario_pdf(declare_fields=False)
    with pdf:
        tree = get_form(pdf, None)

        assert tree.roots == []
        assert "/DA" in pdf.Root.AcroForm


def test_default_correction_keeps_existing_appearance_and_fonts():
    pdf = new_form_pdf()
    with pdf:
        courier = pdf.make_indirect(Dictionary(Type=Name("/Font"), Subtype=Name("/Type1"), BaseFont=Name("/Courier")))
        pdf.Root.AcroForm.DA = String("/Cour 10 Tf 0 g")
        pdf.Root.AcroForm.DR = Dictionary(Font=Dictionary(Helv=courier))

        fixes = AcroFormDefaultsProcessor(pdf).process()

        assert str(pdf.Root.AcroForm.DA) == "/Cour 10 Tf 0 g"
        assert pdf.Root.AcroForm.DR.Font.Helv.BaseFont == Name("/Courier")
        assert "/ZaDb" in pdf.Root.AcroForm.DR.Font
        assert fixes == ["Added ZapfDingbats as /ZaDb to default resources"]


def test_default_correction_adds_missing_fields_array():
    pdf = pikepdf.new()
    with pdf:
        pdf.Root.AcroForm = pdf.make_indirect(Dictionary())

        tree = get_form(pdf, DEFAULT_CORRECTION)

        assert tree.roots == []
        assert isinstance(pdf.Root.AcroForm.Fields, pikepdf.Array)


def test_default_correction_wraps_single_field_dictionary():
    pdf = pikepdf.new()
    with pdf:
        lonely = make_field(pdf, "lonely", FT=Name("/Tx"))
        pdf.Root.AcroForm = pdf.make_indirect(Dictionary(Fields=lonely))

        tree = get_form(pdf, DEFAULT_CORRECTION)

        assert [node.partial_name for node in tree.roots] == ["lonely"]
        assert isinstance(pdf.Root.AcroForm.Fields, pikepdf.Array)


def test_default_correction_drops_non_dictionary_entries():
    pdf = new_form_pdf()
    with pdf:
        kept = make_field(pdf, "kept")
        pdf.Root.AcroForm.Fields.append(7)
        pdf.Root.AcroForm.Fields.append(kept)
        pdf.Root.AcroForm.Fields.append(String("junk"))

        fixes = AcroFormDefaultsProcessor(pdf).process()

        assert len(pdf.Root.AcroForm.Fields) == 1
        assert pdf.Root.AcroForm.Fields[0].objgen == kept.objgen
        assert "Removed 2 non-dictionary Fields entries" in fixes


def test_document_without_acroform_is_not_given_one():
    pdf = pikepdf.new()
    with pdf:
        page = add_page(pdf)
        make_widget(pdf, page, T=String("loose"))

        for fixup in (NO_CORRECTION, DEFAULT_CORRECTION, CREATE_FROM_ANNOTATIONS):
            tree = get_form(pdf, fixup)
            assert not tree.has_acroform
            assert tree.roots == []

        assert "/AcroForm" not in pdf.Root


def test_custom_procedure_runs_before_the_tree_is_built():
    calls = []

    def add_field(pdf):
        calls.append(pdf)
        pdf.Root.AcroForm.Fields.append(make_field(pdf, "added", FT=Name("/Tx")))

    pdf = new_form_pdf()
    with pdf:
        tree = get_form(pdf, CustomCorrection(add_field))

        assert len(calls) == 1 and calls[0] is pdf
        assert [node.partial_name for node in tree.roots] == ["added"]


def test_custom_procedure_error_propagates_and_keeps_partial_changes():
    def half_done(pdf):
        pdf.Root.AcroForm.NeedAppearances = True
        raise RuntimeError("procedure failed")

    pdf = new_form_pdf()
    with pdf:
        with pytest.raises(RuntimeError, match="procedure failed"):
            get_form(pdf, CustomCorrection(half_done))

        assert "/NeedAppearances" in pdf.Root.AcroForm


def test_unknown_fixup_type_is_rejected():
    pdf = new_form_pdf()
    with pdf:
        with pytest.raises(TypeError):
            apply_fixup(pdf, "default")


@pytest.mark.parametrize(
    "name, expected",
    [
        (None, DEFAULT_CORRECTION),
        ("", DEFAULT_CORRECTION),
        ("none", NO_CORRECTION),
        ("Default", DEFAULT_CORRECTION),
        (" create ", CREATE_FROM_ANNOTATIONS),
    ],
)
def test_fixup_from_name(name, expected):
    assert fixup_from_name(name) is expected


def test_fixup_from_unknown_name_raises():
    with pytest.raises(ValueError, match="Unknown fixup 'repair'"):
        fixup_from_name("repair")


def test_fixup_variants_are_value_objects():
    assert NoCorrection() == NO_CORRECTION
    assert DefaultCorrection() == DEFAULT_CORRECTION
    assert CREATE_FROM_ANNOTATIONS.name == "create"


def test_widget_fonts_are_copied_into_default_resources():
    pdf = new_form_pdf()
    with pdf:
        page = add_page(pdf)
        font = pdf.make_indirect(Dictionary(Type=Name("/Font"), Subtype=Name("/Type1"), BaseFont=Name("/Courier")))
        appearance = pikepdf.Stream(pdf, b"/Cour 9 Tf (x) Tj")
        appearance.Resources = Dictionary(Font=Dictionary(Cour=font))
        widget = make_widget(pdf, page, T=String("mono"), FT=Name("/Tx"), AP=Dictionary(N=appearance))

        tree = get_form(pdf, CREATE_FROM_ANNOTATIONS)

        assert [node.partial_name for node in tree.roots] == ["mono"]
        assert pdf.Root.AcroForm.DR.Font.Cour.objgen == font.objgen
        assert harvest_widget_fonts(pdf, [widget]) == []


def test_checkbox_state_appearances_are_harvested():
    pdf = new_form_pdf()
    with pdf:
        page = add_page(pdf)
        font = pdf.make_indirect(Dictionary(Type=Name("/Font"), Subtype=Name("/Type1"), BaseFont=Name("/Symbol")))
        on_state = pikepdf.Stream(pdf, b"/Sym 9 Tf (4) Tj")
        on_state.Resources = Dictionary(Font=Dictionary(Sym=font))
        off_state = pikepdf.Stream(pdf, b"")
        widget = make_widget(pdf, page, AP=Dictionary(N=Dictionary(Yes=on_state, Off=off_state)))

        assert harvest_widget_fonts(pdf, [widget]) == ["/Sym"]
