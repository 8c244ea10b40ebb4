from __future__ import annotations

import unittest

from app.domain.import_errors import InvalidCorrectionError
from app.domain.smart_import import ContentKind, Fix, Severity
from app.mappers.content_rules import get_rule
from app.mappers.field_normalizer import FieldNormalizer, normalize_header


class TestColumnResolution(unittest.TestCase):
    def setUp(self) -> None:
        self.normalizer = FieldNormalizer()

    def test_alias_and_fuzzy_matching(self) -> None:
        headers = ["Identificação do post", "Horário de publicação", "Curtidas", "Comentários", "Alcanse"]

        resolution = self.normalizer.resolve_columns(headers, get_rule(ContentKind.POSTS))

        self.assertEqual(resolution.canonical_to_source["post_id"], "Identificação do post")
        self.assertEqual(resolution.canonical_to_source["posted_at"], "Horário de publicação")
        self.assertEqual(resolution.canonical_to_source["likes"], "Curtidas")
        self.assertEqual(resolution.canonical_to_source["reach"], "Alcanse")
        self.assertEqual(resolution.match_strategies["likes"], "exact_or_alias")
        self.assertEqual(resolution.match_strategies["reach"], "fuzzy")
        self.assertEqual(resolution.missing_required, ())

    def test_containment_matches_decorated_headers(self) -> None:
        headers = ["Nome da campanha", "Valor usado (BRL)"]

        resolution = self.normalizer.resolve_columns(headers, get_rule(ContentKind.CAMPAIGNS))

        self.assertEqual(resolution.canonical_to_source["amount_spent"], "Valor usado (BRL)")

    def test_manual_override_takes_precedence(self) -> None:
        resolution = self.normalizer.resolve_columns(
            ["when", "amount"],
            get_rule(ContentKind.REACH),
            manual_mapping={"date": "when", "reach": "amount"},
        )

        self.assertEqual(resolution.canonical_to_source, {"date": "when", "reach": "amount"})
        self.assertEqual(resolution.match_strategies["reach"], "override")

    def test_invalid_override_raises(self) -> None:
        with self.assertRaises(InvalidCorrectionError):
            self.normalizer.resolve_columns(["data"], get_rule(ContentKind.REACH), manual_mapping={"nope": "data"})
        with self.assertRaises(InvalidCorrectionError):
            self.normalizer.resolve_columns(["data"], get_rule(ContentKind.REACH), manual_mapping={"reach": "missing"})

    def test_missing_required_fields_are_reported(self) -> None:
        resolution = self.normalizer.resolve_columns(["date", "plays"], get_rule(ContentKind.YOUTUBE_DAILY_VIEWS))

        self.assertEqual(resolution.missing_required, ("views",))

    def test_normalize_header(self) -> None:
        self.assertEqual(normalize_header(" Visualizações (total) "), "visualizacoestotal")


class TestRowNormalization(unittest.TestCase):
    def setUp(self) -> None:
        self.normalizer = FieldNormalizer()

    def test_missing_daily_value_becomes_zero_with_info_issue(self) -> None:
        rows = [
            {"data": "01/03/2024", "alcance": "1200"},
            {"data": "02/03/2024", "alcance": ""},
        ]

        output = self.normalizer.normalize(rows, ContentKind.REACH, client_id="client-1", source_file_name="reach.csv")

        self.assertEqual(len(output.records), 2)
        self.assertEqual(output.records[0].fields, {"date": "2024-03-01", "reach": 1200})
        self.assertEqual(output.records[0].date, "2024-03-01")
        self.assertEqual(output.records[1].fields["reach"], 0)
        self.assertIn("reach", output.records[1].imputed_fields)
        self.assertEqual(len(output.issues), 1)
        issue = output.issues[0]
        self.assertEqual(issue.severity, Severity.INFO)
        self.assertEqual(issue.code, "missing_value")
        self.assertEqual(issue.row_index, 1)
        self.assertIn("treated as zero", issue.message)
        self.assertIn("2024-03-02", issue.message)

    def test_impossible_date_excludes_row_with_error(self) -> None:
        rows = [
            {"data": "31/02/2024", "alcance": "10"},
            {"data": "01/03/2024", "alcance": "5"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.REACH, client_id="client-1")

        self.assertEqual([record.date for record in output.records], ["2024-03-01"])
        self.assertEqual(len(output.issues), 1)
        issue = output.issues[0]
        self.assertEqual(issue.issue_id, "invalid_date:r0:date")
        self.assertEqual(issue.severity, Severity.ERROR)
        self.assertTrue(issue.is_blocking)
        self.assertEqual(issue.fix.action, Fix.DROP_ROW)
        self.assertIsNone(output.row_records[0])

    def test_normalized_dates_survive_a_second_pass(self) -> None:
        first = self.normalizer.normalize(
            [{"data": "10 de dez. de 2022", "alcance": "1"}],
            ContentKind.REACH,
            client_id="client-1",
        )
        second = self.normalizer.normalize(
            [{"data": first.records[0].date, "alcance": "1"}],
            ContentKind.REACH,
            client_id="client-1",
        )

        self.assertEqual(first.records[0].date, "2022-12-10")
        self.assertEqual(second.records[0].date, first.records[0].date)

    def test_summary_row_is_excluded_with_drop_fix(self) -> None:
        rows = [
            {"data": "01/03/2024", "alcance": "10"},
            {"data": "Total", "alcance": "10"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.REACH, client_id="client-1")

        self.assertEqual(len(output.records), 1)
        self.assertEqual(output.issues[0].code, "summary_row")
        self.assertEqual(output.issues[0].severity, Severity.WARNING)
        self.assertEqual(output.issues[0].fix.action, Fix.DROP_ROW)

    def test_entity_without_key_is_a_blocking_error(self) -> None:
        rows = [{"identificação do post": "", "horário de publicação": "01/03/2024 10:00", "curtidas": "3"}]

        output = self.normalizer.normalize(rows, ContentKind.POSTS, client_id="client-1")

        self.assertEqual(output.records, [])
        self.assertEqual(output.issues[0].code, "missing_key")
        self.assertTrue(output.issues[0].is_blocking)

    def test_instagram_post_derives_type_and_engagement(self) -> None:
        rows = [
            {
                "identificação do post": "178",
                "horário de publicação": "03/01/2024 10:00",
                "tipo de post": "Carrossel do Instagram",
                "curtidas": "40",
                "comentários": "10",
                "alcance": "1.000",
                "localização": "São Paulo",
            }
        ]

        record = self.normalizer.normalize(rows, ContentKind.POSTS, client_id="client-1").records[0]

        self.assertEqual(record.external_id, "178")
        self.assertEqual(record.date, "2024-03-01")
        self.assertEqual(record.fields["post_type"], "carousel")
        self.assertEqual(record.fields["reach"], 1000)
        self.assertEqual(record.fields["interactions"], 50)
        self.assertEqual(record.fields["engagement_rate"], 5.0)
        self.assertEqual(record.extra["unmapped_columns"], {"localização": "São Paulo"})

    def test_youtube_url_is_reduced_to_video_id(self) -> None:
        rows = [
            {
                "video id": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "video title": "Launch",
                "views": "1,234",
                "duration": "3:33",
            }
        ]

        record = self.normalizer.normalize(rows, ContentKind.YOUTUBE_VIDEOS, client_id="client-1").records[0]

        self.assertEqual(record.external_id, "dQw4w9WgXcQ")
        self.assertEqual(record.extra["source_url"], "https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        self.assertEqual(record.fields["total_views"], 1234)
        self.assertEqual(record.fields["duration_seconds"], 213)

    def test_meta_ads_ids_are_prefixed(self) -> None:
        rows = [{"nome da campanha": "Black Friday", "alcance": "1.234", "valor usado (brl)": "R$ 1.234,56"}]

        record = self.normalizer.normalize(rows, ContentKind.CAMPAIGNS, client_id="client-1").records[0]

        self.assertEqual(record.external_id, "campaign:Black Friday")
        self.assertEqual(record.fields["reach"], 1234)
        self.assertEqual(record.fields["amount_spent"], 1234.56)
        self.assertTrue(record.is_entity)

    def test_subscriber_rows_are_summed_per_day(self) -> None:
        rows = [
            {"created at": "2024-03-01", "acquisition source": "organic", "count": "3"},
            {"created at": "2024-03-01", "acquisition source": "ads", "count": "2"},
            {"created at": "2024-03-02", "acquisition source": "organic", "count": "1"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.NEWSLETTER_SUBSCRIBERS, client_id="client-1")

        self.assertEqual(len(output.records), 2)
        first = output.records[0]
        self.assertEqual(first.fields, {"date": "2024-03-01", "new_subscribers": 5, "subscribers": 5})
        self.assertEqual(
            first.extra["by_acquisition_source"],
            {"organic": {"new_subscribers": 3}, "ads": {"new_subscribers": 2}},
        )
        self.assertEqual(first.source_rows, (0, 1))

    def test_non_numeric_value_is_imputed_and_reported(self) -> None:
        output = self.normalizer.normalize(
            [{"data": "01/03/2024", "seguidores": "n/a"}],
            ContentKind.FOLLOWERS,
            client_id="client-1",
        )

        self.assertEqual(output.records[0].fields["followers"], 0)
        self.assertIn("Non-numeric value 'n/a'", output.issues[0].message)

    def test_instagram_post_times_are_month_first(self) -> None:
        rows = [
            {"identificação do post": "178", "horário de publicação": "12/25/2025 06:54"},
            {"identificação do post": "179", "horário de publicação": "12/10/2025 06:54"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.POSTS, client_id="client-1")

        self.assertEqual([record.date for record in output.records], ["2025-12-25", "2025-12-10"])
        self.assertEqual(output.issues, [])

    def test_entity_named_like_a_total_is_kept(self) -> None:
        rows = [
            {"nome da campanha": "Totalmente Grátis", "alcance": "10"},
            {"nome da campanha": "Total Fitness", "alcance": "12"},
            {"nome da campanha": "Total", "alcance": "22"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.CAMPAIGNS, client_id="client-1")

        self.assertEqual(
            [record.external_id for record in output.records],
            ["campaign:Totalmente Grátis", "campaign:Total Fitness"],
        )
        self.assertEqual([(issue.code, issue.row_index) for issue in output.issues], [("summary_row", 2)])

    def test_instagram_breakdown_rows_keep_only_total(self) -> None:
        base = {"identificação do post": "178", "horário de publicação": "03/01/2024 10:00"}
        rows = [
            {**base, "comentário de dados": "Total", "curtidas": "40"},
            {**base, "comentário de dados": "Seguidores", "curtidas": "30"},
            {**base, "comentário de dados": "Não seguidores", "curtidas": "10"},
            {"identificação do post": "179", "horário de publicação": "03/02/2024 09:00", "comentário de dados": "", "curtidas": "5"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.POSTS, client_id="client-1")

        self.assertEqual([record.external_id for record in output.records], ["178", "179"])
        self.assertEqual(output.records[0].fields["likes"], 40)
        self.assertNotIn("row_scope", output.records[0].fields)
        self.assertIsNone(output.row_records[1])
        self.assertIsNone(output.row_records[2])
        self.assertEqual(output.issues, [])

    def test_twitter_posts_roll_up_into_daily_metrics(self) -> None:
        rows = [
            {"post id": "1", "post text": "a", "time": "2025-02-11 10:00 +0000", "impressions": "100", "engagements": "5"},
            {"post id": "2", "post text": "b", "time": "2025-02-11 18:30 +0000", "impressions": "200", "engagements": "7"},
            {"post id": "3", "post text": "c", "time": "2025-02-12 09:00 +0000", "impressions": "50", "engagements": ""},
        ]

        output = self.normalizer.normalize(rows, ContentKind.TWITTER_POSTS, client_id="client-1")

        posts = [record for record in output.records if record.content_kind == ContentKind.TWITTER_POSTS]
        daily = [record for record in output.records if record.content_kind == ContentKind.TWITTER_DAILY]
        self.assertEqual(len(posts), 3)
        self.assertEqual(posts[0].date, "2025-02-11")
        self.assertEqual(
            daily[0].fields,
            {"date": "2025-02-11", "posts_impressions": 300, "posts_engagements": 12},
        )
        self.assertEqual(daily[0].extra, {"rollup_of": "twitter_posts", "post_count": 2})
        self.assertEqual(daily[0].source_rows, (0, 1))
        self.assertFalse(daily[0].is_entity)
        self.assertEqual(daily[1].fields["posts_engagements"], 0)
        self.assertIn("posts_engagements", daily[1].imputed_fields)

    def test_newsletter_posts_roll_up_into_daily_performance(self) -> None:
        rows = [
            {"post id": "p1", "subject": "Hello", "date": "2024-03-01", "delivered": "900",
             "unique opens": "300", "unique clicks": "30", "unsubscribed": "2"},
            {"post id": "p2", "subject": "Again", "date": "2024-03-01", "delivered": "100",
             "unique opens": "50", "unique clicks": "5", "unsubscribed": "1"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.NEWSLETTER_POSTS, client_id="client-1")

        (daily,) = [r for r in output.records if r.content_kind == ContentKind.NEWSLETTER_DAILY_PERFORMANCE]
        self.assertEqual(
            daily.fields,
            {
                "date": "2024-03-01",
                "posts_delivered": 1000,
                "posts_opens": 350,
                "posts_clicks": 35,
                "posts_unsubscribes": 3,
                "posts_spam_reports": 0,
            },
        )
        self.assertEqual(daily.imputed_fields, frozenset({"posts_spam_reports"}))

    def test_subscriber_running_total_follows_dates(self) -> None:
        rows = [
            {"created at": "2024-03-02", "acquisition source": "organic", "count": "1"},
            {"created at": "2024-03-01", "acquisition source": "organic", "count": "3"},
            {"created at": "2024-03-01", "acquisition source": "ads", "count": "2"},
        ]

        output = self.normalizer.normalize(rows, ContentKind.NEWSLETTER_SUBSCRIBERS, client_id="client-1")

        self.assertEqual(
            [(record.date, record.fields["new_subscribers"], record.fields["subscribers"]) for record in output.records],
            [("2024-03-01", 5, 5), ("2024-03-02", 1, 6)],
        )


if __name__ == "__main__":
    unittest.main()
