"""
GEDCOM import/export tests.

What these tests verify
-----------------------
- Parsing through ged4py: continuation lines, sub-record paths, record
  line numbers and raw text, and whole-file rejection of malformed input.
- Import of individuals, families, sources and media objects (two passes),
  with per-record error reporting and `dry_run` / `replace` modes.
- Upload limits (HTTP 413), missing HEAD (HTTP 400), manager-only access and
  `Idempotency-Key` replays.
- Export: GEDCOM 5.5.1 text with xref links, the JSON summary, and the
  `X-Export-*` headers including the row cap.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from genealogy.gedcom import GedcomError, export_gedcom, import_gedcom, parse
from genealogy.models import Family, Individual, LogType, MediaObject, SiteLog, Source, Tree, TreeRole

User = get_user_model()

FAMILY_GED = """0 HEAD
1 SOUR TEST
1 GEDC
2 VERS 5.5.1
1 CHAR UTF-8
0 @U1@ SUBM
1 NAME Tester
0 @I1@ INDI
1 NAME John /White/
1 SEX M
1 BIRT
2 DATE 12 MAR 1901
2 PLAC Leeds, England
1 FAMS @F1@
1 OBJE @M1@
1 NOTE First line
2 CONT second line
0 @I2@ INDI
1 NAME Mary /Black/
2 _MARNM /White/
1 SEX F
1 FAMS @F1@
0 @I3@ INDI
1 NAME Peter /White/
1 SEX M
1 FAMC @F1@
0 @F1@ FAM
1 HUSB @I1@
1 WIFE @I2@
1 CHIL @I3@
1 MARR
2 DATE 1928
0 @S1@ SOUR
1 TITL Parish register
1 AUTH Church of England
0 @M1@ OBJE
1 FILE photos/john.jpg
2 FORM jpg
2 TITL John in 1920
0 TRLR
"""

BROKEN_GED = """0 HEAD
0 @I1@ INDI
1 NAME Anne /Green/
0 INDI
1 NAME No /Xref/
0 @I1@ INDI
1 NAME Duplicate /Green/
0 @I5@ INDI
1 SEX M
0 @F1@ FAM
1 HUSB @I9@
0 @R1@ REPO
1 NAME Archive
0 TRLR
"""


class ParseTests(SimpleTestCase):
    def test_continuation_lines_fold_into_value(self):
        records = parse("0 HEAD\n0 @I1@ INDI\n1 NOTE Start\n2 CONC ed here\n2 CONT next line\n0 TRLR\n")
        self.assertEqual(records[1].xref, "I1")
        self.assertEqual(records[1].value_of("NOTE"), "Started here\nnext line")

    def test_paths_and_lines(self):
        records = parse(FAMILY_GED)
        person = records[2]
        self.assertEqual(person.tag, "INDI")
        self.assertEqual(person.line, 8)
        self.assertEqual(person.value_of("BIRT/PLAC"), "Leeds, England")
        self.assertEqual(person.value_of("DEAT/DATE"), "")
        self.assertEqual(person.value_of("NAME"), "John /White/")
        self.assertEqual(len(person.all("FAMS")), 1)
        self.assertTrue(person.raw.startswith("0 @I1@ INDI\n1 NAME John /White/"))
        self.assertTrue(person.raw.endswith("2 CONT second line"))

    def test_missing_head_rejected(self):
        with self.assertRaises(GedcomError):
            parse("0 @I1@ INDI\n1 NAME A\n")

    def test_malformed_line_rejects_file(self):
        with self.assertRaises(GedcomError):
            parse("0 HEAD\nnonsense\n0 @I1@ INDI\n0 TRLR\n")


class ImportServiceTests(TestCase):
    def setUp(self):
        self.tree = Tree.objects.create(name="demo", title="Demo")

    def test_import_family(self):
        result = import_gedcom(self.tree, FAMILY_GED)
        self.assertEqual(result.counts, {"INDI": 3, "FAM": 1, "SOUR": 1, "OBJE": 1})
        self.assertEqual(result.errors, [])

        john = Individual.objects.get(tree=self.tree, xref="I1")
        self.assertEqual(john.surname, "White")
        self.assertEqual(john.birth_date, "12 MAR 1901")
        self.assertEqual(john.notes, "First line\nsecond line")
        self.assertTrue(john.gedcom.startswith("0 @I1@ INDI"))
        self.assertEqual(Individual.objects.get(tree=self.tree, xref="I2").married_name, "/White/")

        family = Family.objects.get(tree=self.tree, xref="F1")
        self.assertEqual(family.husband, john)
        self.assertEqual(family.wife.xref, "I2")
        self.assertEqual([c.xref for c in family.children.all()], ["I3"])
        self.assertEqual(family.marriage_date, "1928")

        media = MediaObject.objects.get(tree=self.tree, xref="M1")
        self.assertEqual(media.mime_type, "image/jpeg")
        self.assertEqual(media.title, "John in 1920")
        self.assertEqual(list(media.individuals.all()), [john])
        self.assertEqual(Source.objects.get(tree=self.tree).author, "Church of England")

    def test_errors_per_record(self):
        result = import_gedcom(self.tree, BROKEN_GED)
        codes = sorted(e["code"] for e in result.errors)
        self.assertEqual(
            codes,
            sorted(["missing_xref", "duplicate_xref", "invalid",
                    "unknown_individual", "unsupported_record"]),
        )
        self.assertEqual(result.counts["INDI"], 1)
        # The family is kept without the unknown husband.
        self.assertEqual(result.counts["FAM"], 1)
        self.assertIsNone(Family.objects.get(tree=self.tree).husband)
        missing = next(e for e in result.errors if e["code"] == "missing_xref")
        self.assertEqual(missing["line"], 4)

    def test_dry_run_keeps_nothing(self):
        result = import_gedcom(self.tree, FAMILY_GED, dry_run=True)
        self.assertTrue(result.dry_run)
        self.assertEqual(result.counts["INDI"], 3)
        self.assertFalse(Individual.objects.filter(tree=self.tree).exists())

    def test_existing_xref_is_duplicate_unless_replacing(self):
        Individual.objects.create(tree=self.tree, xref="I1", name="Old /Person/")
        result = import_gedcom(self.tree, FAMILY_GED)
        self.assertIn("duplicate_xref", [e["code"] for e in result.errors])
        self.assertEqual(Individual.objects.get(tree=self.tree, xref="I1").name, "Old /Person/")

        other = Tree.objects.create(name="other", title="Other")
        Individual.objects.create(tree=other, xref="I1", name="Old /Person/")
        result = import_gedcom(other, FAMILY_GED, replace=True)
        self.assertTrue(result.replaced)
        self.assertEqual(result.errors, [])
        self.assertEqual(Individual.objects.get(tree=other, xref="I1").name, "John /White/")

    @override_settings(IMPORT_MAX_RECORDS=2)
    def test_record_cap_truncates(self):
        result = import_gedcom(self.tree, FAMILY_GED)
        self.assertTrue(result.truncated)
        # SUBM and the first individual fill the cap.
        self.assertEqual(result.counts["INDI"], 1)


class ExportServiceTests(TestCase):
    def setUp(self):
        self.tree = Tree.objects.create(name="demo", title="Demo")
        import_gedcom(self.tree, FAMILY_GED)

    def test_export_contains_records_and_links(self):
        text = export_gedcom(self.tree)
        lines = text.splitlines()
        self.assertEqual(lines[0], "0 HEAD")
        self.assertIn("2 VERS 5.5.1", lines)
        self.assertIn("1 CHAR UTF-8", lines)
        self.assertIn("0 @I1@ INDI", lines)
        self.assertIn("1 FAMS @F1@", lines)
        self.assertIn("1 FAMC @F1@", lines)
        self.assertIn("1 CHIL @I3@", lines)
        self.assertIn("1 OBJE @M1@", lines)
        self.assertIn("2 CONT second line", lines)
        self.assertIn("0 @S1@ SOUR", lines)
        self.assertEqual(lines[-1], "0 TRLR")

    def test_long_values_use_conc(self):
        person = Individual.objects.get(tree=self.tree, xref="I3")
        person.notes = "x" * 450
        person.save()
        lines = export_gedcom(self.tree).splitlines()
        self.assertEqual(sum(1 for line in lines if line.startswith("2 CONC ")), 2)

    def test_export_can_be_imported_again(self):
        copy = Tree.objects.create(name="copy", title="Copy")
        result = import_gedcom(copy, export_gedcom(self.tree))
        self.assertEqual(result.counts, {"INDI": 3, "FAM": 1, "SOUR": 1, "OBJE": 1})


class GedcomApiTests(TestCase):
    def setUp(self):
        self.tree = Tree.objects.create(name="demo", title="Demo")
        self.manager = User.objects.create_user(username="manager", password="pw")
        self.editor = User.objects.create_user(username="editor", password="pw")
        self.tree.set_user_preference(self.manager, "canedit", TreeRole.ADMIN)
        self.tree.set_user_preference(self.editor, "canedit", TreeRole.EDIT)
        self.client = APIClient()
        self.client.login(username="manager", password="pw")
        self.import_url = "/api/trees/demo/import/"
        self.export_url = "/api/trees/demo/export/"

    def _upload(self, text=FAMILY_GED, name="family.ged"):
        return {"file": SimpleUploadedFile(name, text.encode("utf-8"), content_type="text/plain")}

    def test_import(self):
        r = self.client.post(self.import_url, self._upload(), format="multipart")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.json()["counts"]["INDI"], 3)
        self.assertFalse(r.json()["dry_run"])
        self.assertTrue(SiteLog.objects.filter(log_type=LogType.EDIT, message__startswith="GEDCOM import").exists())

    def test_dry_run(self):
        r = self.client.post(f"{self.import_url}?dry_run=1", self._upload(), format="multipart")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["dry_run"])
        self.assertEqual(Individual.objects.count(), 0)
        self.assertFalse(SiteLog.objects.filter(message__startswith="GEDCOM import").exists())

    def test_missing_file_400(self):
        r = self.client.post(self.import_url, {}, format="multipart")
        self.assertEqual(r.status_code, 400)

    def test_not_gedcom_400(self):
        r = self.client.post(self.import_url, self._upload("0 @I1@ INDI\n1 NAME A\n"), format="multipart")
        self.assertEqual(r.status_code, 400)
        self.assertIn("HEAD", r.json()["file"][0])

    def test_malformed_gedcom_400(self):
        r = self.client.post(self.import_url, self._upload("0 HEAD\nnot a gedcom line\n0 TRLR\n"), format="multipart")
        self.assertEqual(r.status_code, 400)
        self.assertIn("Malformed", r.json()["file"][0])
        self.assertEqual(Individual.objects.count(), 0)

    @override_settings(MAX_IMPORT_BYTES=100)
    def test_too_large_413(self):
        r = self.client.post(self.import_url, self._upload(), format="multipart")
        self.assertEqual(r.status_code, 413, r.content)

    def test_latin1_upload_decodes(self):
        text = "0 HEAD\n0 @I1@ INDI\n1 NAME Zoë /Müller/\n0 TRLR\n"
        upload = {"file": SimpleUploadedFile("old.ged", text.encode("latin-1"), content_type="text/plain")}
        r = self.client.post(self.import_url, upload, format="multipart")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(Individual.objects.get().surname, "Müller")

    def test_editor_cannot_import(self):
        client = APIClient()
        client.login(username="editor", password="pw")
        r = client.post(self.import_url, self._upload(), format="multipart")
        self.assertEqual(r.status_code, 403)

    def test_idempotent_replay(self):
        headers = {"HTTP_IDEMPOTENCY_KEY": "import-1"}
        r1 = self.client.post(self.import_url, self._upload(), format="multipart", **headers)
        self.assertEqual(r1.status_code, 200)
        r2 = self.client.post(self.import_url, self._upload(), format="multipart", **headers)
        self.assertEqual(r2.status_code, 200)
        self.assertEqual(r2.headers.get("Idempotent-Replayed"), "true")
        self.assertEqual(r2.json(), r1.json())
        self.assertEqual(Individual.objects.count(), 3)

    def test_export_gedcom(self):
        import_gedcom(self.tree, FAMILY_GED)
        r = self.client.get(self.export_url)
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r["Content-Type"].startswith("text/x-gedcom"))
        self.assertIn('filename="demo.ged"', r["Content-Disposition"])
        self.assertEqual(r["X-Export-Total"], "6")
        self.assertEqual(r["X-Export-Truncated"], "false")
        self.assertIn("0 @F1@ FAM", r.content.decode("utf-8"))

    def test_export_json_summary(self):
        import_gedcom(self.tree, FAMILY_GED)
        r = self.client.get(self.export_url, {"format": "json"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["counts"], {"INDI": 3, "FAM": 1, "SOUR": 1, "OBJE": 1})
        self.assertEqual(r.json()["total"], 6)

    @override_settings(EXPORT_MAX_ROWS=1)
    def test_export_row_cap(self):
        import_gedcom(self.tree, FAMILY_GED)
        r = self.client.get(self.export_url)
        self.assertEqual(r["X-Export-Limit"], "1")
        self.assertEqual(r["X-Export-Truncated"], "true")
        text = r.content.decode("utf-8")
        self.assertIn("0 @I1@ INDI", text)
        self.assertNotIn("0 @I2@ INDI", text)

    def test_public_tree_export_for_visitors(self):
        visitor = APIClient()
        self.assertEqual(visitor.get(self.export_url).status_code, 200)
        self.tree.set_preference("REQUIRE_AUTHENTICATION", "1")
        self.assertEqual(visitor.get(self.export_url).status_code, 403)
