"""
Census assistant tests: the static census table and `GET /api/census/`.
"""

from django.test import SimpleTestCase, TestCase

from genealogy.census import CENSUS_PLACES, Census, census_options


class CensusDataTests(SimpleTestCase):
    def test_identifiers_and_labels(self):
        census = Census(date="03 APR 1881", place="England")
        self.assertEqual(census.year, 1881)
        self.assertEqual(census.census, "CensusOfEngland1881")
        self.assertEqual(census.label, "England 1881")

    def test_canadian_1851_census_taken_in_1852(self):
        census = CENSUS_PLACES["Canada"][0]
        self.assertEqual(census.date, "12 JAN 1852")
        self.assertEqual(census.census, "CensusOfCanada1851")
        self.assertEqual(census.label, "Canada 1852")

    def test_place_with_spaces(self):
        census = CENSUS_PLACES["United States"][0]
        self.assertEqual(census.census, "CensusOfUnitedStates1790")
        self.assertEqual(census.label, "United States 1790")

    def test_register_1939_only_for_england_and_wales(self):
        self.assertEqual(CENSUS_PLACES["England"][-1].year, 1939)
        self.assertEqual(CENSUS_PLACES["Wales"][-1].year, 1939)
        self.assertEqual(CENSUS_PLACES["Scotland"][-1].year, 1921)

    def test_dates_ascending(self):
        for place, censuses in CENSUS_PLACES.items():
            years = [c.year for c in censuses]
            self.assertEqual(years, sorted(years), place)

    def test_filter_by_place(self):
        groups = census_options("wales")
        self.assertEqual([g["place"] for g in groups], ["Wales"])
        self.assertEqual(census_options("Atlantis"), [])
        self.assertEqual(len(census_options()), len(CENSUS_PLACES))


class CensusApiTests(TestCase):
    def test_anonymous_can_read(self):
        r = self.client.get("/api/census/")
        self.assertEqual(r.status_code, 200)
        places = [group["place"] for group in r.json()]
        self.assertIn("England", places)
        self.assertIn("United States", places)

    def test_place_filter(self):
        r = self.client.get("/api/census/", {"place": "Scotland"})
        self.assertEqual(r.status_code, 200)
        data = r.json()
        self.assertEqual(len(data), 1)
        first = data[0]["censuses"][0]
        self.assertEqual(
            first,
            {"date": "06 JUN 1841", "place": "Scotland", "census": "CensusOfScotland1841",
             "year": 1841, "label": "Scotland 1841"},
        )
