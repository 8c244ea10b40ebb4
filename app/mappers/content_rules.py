"""
app/mappers/content_rules.py

Declarative header-signature and column-alias tables, one entry per ContentKind.

Platform differences live here as data; the classifier and normalizer are generic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from app.domain.smart_import import ContentKind, Platform


class FieldType(str, Enum):
    INT = "int"
    FLOAT = "float"
    PERCENT = "percent"
    CURRENCY = "currency"
    DATE = "date"
    DURATION = "duration"
    STRING = "string"


NUMERIC_TYPES = frozenset({FieldType.INT, FieldType.FLOAT, FieldType.PERCENT, FieldType.CURRENCY})


@dataclass(frozen=True)
class FieldSpec:
    """
    Canonical field with its accepted source-column aliases.
    """

    name: str
    aliases: tuple[str, ...]
    type: FieldType = FieldType.INT
    required: bool = False
    # Numeric dates only; Meta Business Suite post exports write MM/DD/YYYY.
    day_first: bool = True
    fuzzy: bool = True

    @property
    def is_numeric(self) -> bool:
        return self.type in NUMERIC_TYPES

    @property
    def is_counter(self) -> bool:
        return self.type in {FieldType.INT, FieldType.CURRENCY, FieldType.DURATION}

    @property
    def is_rate(self) -> bool:
        return self.type == FieldType.PERCENT


Deriver = Callable[[dict[str, Any], dict[str, Any]], None]


@dataclass(frozen=True)
class ContentRule:
    """
    Classification signature plus normalization recipe for one ContentKind.

    ``required_groups`` is a tuple of alias groups; a group matches when any of
    its tokens appears in the headers or the preamble. ``forbidden_tokens``
    subtract a penalty per hit so a specific file is not mistaken for a generic
    one.

    Rows whose ``scope_field`` cell is set to anything outside ``scope_values``
    are breakdown rows and are skipped. ``rollup_fields`` maps a daily field of
    ``rollup_kind`` to the entity fields summed into it, first present source
    wins. ``running_total`` is ``(source, target)``: target holds the cumulative
    sum of source over the file's dates.
    """

    platform: Platform
    content_kind: ContentKind
    required_groups: tuple[tuple[str, ...], ...]
    fields: tuple[FieldSpec, ...]
    forbidden_tokens: tuple[str, ...] = ()
    date_field: str | None = "date"
    id_field: str | None = None
    id_prefix: str | None = None
    aggregate_by_date: bool = False
    breakdown_field: str | None = None
    derive: Deriver | None = None
    scope_field: str | None = None
    scope_values: tuple[str, ...] = ("total",)
    rollup_kind: ContentKind | None = None
    rollup_fields: tuple[tuple[str, tuple[str, ...]], ...] = ()
    running_total: tuple[str, str] | None = None

    @property
    def is_entity(self) -> bool:
        return self.id_field is not None

    @property
    def key_field(self) -> str | None:
        return self.id_field if self.is_entity else self.date_field

    def field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.required)


# ---------------------------------------------------------------------------
# Shared alias groups
# ---------------------------------------------------------------------------

DATE_TOKENS = ("date", "data", "dia", "day")
POST_ID_TOKENS = ("identificacao do post", "post id", "link permanente", "permalink")
VIDEO_TOKENS = ("video id", "id do video", "video title", "titulo do video")
META_METRIC_TOKENS = (
    "alcance",
    "reach",
    "impressoes",
    "impressions",
    "valor usado",
    "amount spent",
    "resultados",
    "results",
)

_YOUTUBE_ID = re.compile(r"(?:watch\?v=|youtu\.be/|/shorts/)([A-Za-z0-9_-]{6,})")
_TWEET_ID = re.compile(r"/status/(\d+)")


def _date_field(*extra: str, required: bool = True) -> FieldSpec:
    return FieldSpec("date", (*extra, "date", "data", "dia", "day"), FieldType.DATE, required=required)


def _instagram_daily(kind: ContentKind, metric: str, tokens: tuple[str, ...]) -> ContentRule:
    # Daily Instagram exports carry the metric name in a title line and a "primary" value column.
    return ContentRule(
        platform=Platform.INSTAGRAM,
        content_kind=kind,
        required_groups=(DATE_TOKENS, tokens),
        forbidden_tokens=POST_ID_TOKENS,
        fields=(
            _date_field(),
            FieldSpec(metric, (*tokens, "primary", "value", "valor"), required=True),
        ),
    )


# ---------------------------------------------------------------------------
# Derived fields
# ---------------------------------------------------------------------------


def derive_instagram_post(fields: dict[str, Any], extra: dict[str, Any]) -> None:
    raw_type = str(fields.get("post_type") or "").lower()
    if "carrossel" in raw_type or "carousel" in raw_type:
        post_type = "carousel"
    elif "reel" in raw_type:
        post_type = "reel"
    elif "story" in raw_type or "stories" in raw_type:
        post_type = "story"
    else:
        post_type = "image"
    fields["post_type"] = post_type

    reach = fields.get("reach") or 0
    interactions = sum(fields.get(name) or 0 for name in ("likes", "comments", "shares", "saves"))
    fields["interactions"] = interactions
    if not fields.get("engagement_rate") and reach:
        fields["engagement_rate"] = round(interactions / reach * 100, 2)


def derive_instagram_story(fields: dict[str, Any], extra: dict[str, Any]) -> None:
    fields["interactions"] = sum(fields.get(name) or 0 for name in ("likes", "replies", "shares"))


def derive_youtube_video(fields: dict[str, Any], extra: dict[str, Any]) -> None:
    video_id = str(fields.get("video_id") or "")
    match = _YOUTUBE_ID.search(video_id)
    if match:
        extra["source_url"] = video_id
        fields["video_id"] = match.group(1)


def derive_twitter_post(fields: dict[str, Any], extra: dict[str, Any]) -> None:
    post_id = str(fields.get("post_id") or "")
    match = _TWEET_ID.search(post_id)
    if match:
        extra["permalink"] = post_id
        fields["post_id"] = match.group(1)
    _twitter_engagement_rate(fields)


def derive_twitter_daily(fields: dict[str, Any], extra: dict[str, Any]) -> None:
    _twitter_engagement_rate(fields)


def _twitter_engagement_rate(fields: dict[str, Any]) -> None:
    impressions = fields.get("impressions") or 0
    engagements = fields.get("engagements") or 0
    fields["engagement_rate"] = round(engagements / impressions * 100, 2) if impressions else 0.0


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

CONTENT_RULES: tuple[ContentRule, ...] = (
    # Instagram -------------------------------------------------------------
    ContentRule(
        platform=Platform.INSTAGRAM,
        content_kind=ContentKind.STORIES,
        required_groups=(
            POST_ID_TOKENS,
            ("navegacao", "navigation", "respostas", "replies", "toques em figurinhas"),
            ("horario de publicacao", "published at", "publish time", "data", "date"),
        ),
        fields=(
            FieldSpec("story_id", ("identificacao do post", "post id", "story id"), FieldType.STRING, required=True),
            FieldSpec(
                "posted_at",
                ("horario de publicacao", "published at", "publish time", "data", "date"),
                FieldType.DATE,
                day_first=False,
            ),
            FieldSpec("caption", ("descricao", "description", "legenda"), FieldType.STRING),
            FieldSpec("permalink", ("link permanente", "permalink"), FieldType.STRING),
            FieldSpec("duration_seconds", ("duracao (s)", "duration (s)", "duration"), FieldType.DURATION),
            FieldSpec("views", ("visualizacoes", "views", "impressions")),
            FieldSpec("reach", ("alcance", "reach")),
            FieldSpec("likes", ("curtidas", "likes")),
            FieldSpec("shares", ("compartilhamentos", "shares")),
            FieldSpec("replies", ("respostas", "replies")),
            FieldSpec("forward_taps", ("navegacao", "navigation")),
            FieldSpec("profile_visits", ("visitas ao perfil", "profile visits")),
            FieldSpec("sticker_taps", ("toques em figurinhas", "sticker taps")),
            FieldSpec("link_clicks", ("cliques no link", "link clicks")),
        ),
        date_field="posted_at",
        id_field="story_id",
        derive=derive_instagram_story,
    ),
    ContentRule(
        platform=Platform.INSTAGRAM,
        content_kind=ContentKind.POSTS,
        required_groups=(
            POST_ID_TOKENS,
            ("horario de publicacao", "published at", "publish time", "data", "date"),
        ),
        forbidden_tokens=("navegacao", "navigation", "respostas", "replies"),
        fields=(
            FieldSpec("post_id", ("identificacao do post", "post id", "post_id"), FieldType.STRING, required=True),
            FieldSpec(
                "posted_at",
                ("horario de publicacao", "published at", "publish time", "posted_at", "data", "date"),
                FieldType.DATE,
                day_first=False,
            ),
            FieldSpec("row_scope", ("comentario de dados", "data comment"), FieldType.STRING, fuzzy=False),
            FieldSpec("post_type", ("tipo de post", "post type", "post_type"), FieldType.STRING),
            FieldSpec("caption", ("descricao", "caption", "legenda", "description"), FieldType.STRING),
            FieldSpec("permalink", ("link permanente", "permalink"), FieldType.STRING),
            FieldSpec("account_name", ("nome da conta", "account name"), FieldType.STRING),
            FieldSpec("likes", ("curtidas", "likes")),
            FieldSpec("comments", ("comentarios", "comments")),
            FieldSpec("shares", ("compartilhamentos", "shares")),
            FieldSpec("saves", ("salvamentos", "saves")),
            FieldSpec("reach", ("alcance", "reach")),
            FieldSpec("impressions", ("visualizacoes", "impressions", "views")),
            FieldSpec("follows", ("seguimentos", "follows")),
            FieldSpec("engagement_rate", ("taxa de engajamento", "engagement rate", "engagement_rate"), FieldType.PERCENT),
            FieldSpec("duration_seconds", ("duracao (s)", "duration (s)", "duration"), FieldType.DURATION),
        ),
        date_field="posted_at",
        id_field="post_id",
        derive=derive_instagram_post,
        scope_field="row_scope",
    ),
    _instagram_daily(ContentKind.REACH, "reach", ("alcance", "reach")),
    _instagram_daily(ContentKind.FOLLOWERS, "followers", ("seguidores no instagram", "seguidores", "followers")),
    _instagram_daily(ContentKind.VIEWS, "views", ("visualizacoes", "views")),
    _instagram_daily(ContentKind.INTERACTIONS, "interactions", ("interacoes", "interactions")),
    _instagram_daily(ContentKind.PROFILE_VISITS, "profile_visits", ("visitas ao perfil", "profile visits")),
    _instagram_daily(ContentKind.LINK_CLICKS, "link_clicks", ("cliques no link", "link clicks")),
    # YouTube ---------------------------------------------------------------
    ContentRule(
        platform=Platform.YOUTUBE,
        content_kind=ContentKind.YOUTUBE_VIDEOS,
        required_groups=(
            ("video id", "id do video", "content", "conteudo"),
            ("video title", "titulo do video", "title", "titulo"),
            ("views", "visualizacoes"),
            ("duration", "duracao", "watch time", "tempo de exibicao"),
        ),
        fields=(
            FieldSpec("video_id", ("video id", "id do video", "content", "conteudo", "video"), FieldType.STRING, required=True),
            FieldSpec("title", ("video title", "titulo do video", "title", "titulo"), FieldType.STRING),
            FieldSpec("published_at", ("video publish time", "data de publicacao", "published", "publish time"), FieldType.DATE),
            FieldSpec("duration_seconds", ("duration", "duracao"), FieldType.DURATION),
            FieldSpec("total_views", ("views", "visualizacoes")),
            FieldSpec("watch_hours", ("watch time (hours)", "tempo de exibicao (horas)"), FieldType.FLOAT),
            FieldSpec("subscribers_gained", ("subscribers", "inscritos", "subscribers gained")),
            FieldSpec("impressions", ("impressions", "impressoes")),
            FieldSpec("click_rate", ("impressions click-through rate (%)", "click rate", "ctr", "taxa de cliques"), FieldType.PERCENT),
        ),
        date_field="published_at",
        id_field="video_id",
        derive=derive_youtube_video,
    ),
    ContentRule(
        platform=Platform.YOUTUBE,
        content_kind=ContentKind.YOUTUBE_VIDEOS_PUBLISHED,
        required_groups=(DATE_TOKENS, ("videos published", "videos publicados", "videos added")),
        fields=(
            _date_field(),
            FieldSpec("videos_published", ("videos published", "videos publicados", "videos added"), required=True),
        ),
    ),
    ContentRule(
        platform=Platform.YOUTUBE,
        content_kind=ContentKind.YOUTUBE_DAILY_VIEWS,
        required_groups=(DATE_TOKENS, ("views", "visualizacoes")),
        forbidden_tokens=VIDEO_TOKENS,
        fields=(
            _date_field(),
            FieldSpec("views", ("views", "visualizacoes"), required=True),
            FieldSpec("watch_hours", ("watch time (hours)", "tempo de exibicao (horas)"), FieldType.FLOAT),
            FieldSpec("subscribers_gained", ("subscribers", "inscritos", "subscribers gained")),
        ),
    ),
    # Newsletter ------------------------------------------------------------
    ContentRule(
        platform=Platform.NEWSLETTER,
        content_kind=ContentKind.NEWSLETTER_POSTS,
        required_groups=(("subject", "title"), ("post id",)),
        fields=(
            FieldSpec("post_id", ("post id",), FieldType.STRING, required=True),
            FieldSpec("subject", ("subject", "title"), FieldType.STRING),
            FieldSpec("sent_at", ("date", "sent at", "publish date"), FieldType.DATE),
            FieldSpec("sent", ("sent",)),
            FieldSpec("delivered", ("delivered",)),
            FieldSpec("total_opens", ("total opens",)),
            FieldSpec("unique_opens", ("unique opens",)),
            FieldSpec("open_rate", ("open rate",), FieldType.PERCENT),
            FieldSpec("unique_clicks", ("unique clicks",)),
            FieldSpec("click_rate", ("click-through rate", "click rate"), FieldType.PERCENT),
            FieldSpec("unsubscribed", ("unsubscribed",)),
            FieldSpec("spam_reported", ("spam reported",)),
        ),
        date_field="sent_at",
        id_field="post_id",
        rollup_kind=ContentKind.NEWSLETTER_DAILY_PERFORMANCE,
        rollup_fields=(
            ("posts_delivered", ("delivered",)),
            ("posts_opens", ("total_opens", "unique_opens")),
            ("posts_clicks", ("unique_clicks",)),
            ("posts_unsubscribes", ("unsubscribed",)),
            ("posts_spam_reports", ("spam_reported",)),
        ),
    ),
    ContentRule(
        platform=Platform.NEWSLETTER,
        content_kind=ContentKind.NEWSLETTER_DAILY_PERFORMANCE,
        required_groups=(DATE_TOKENS, ("delivered",), ("open rate",)),
        forbidden_tokens=("post id",),
        fields=(
            _date_field(),
            FieldSpec("delivered", ("delivered",), required=True),
            FieldSpec("open_rate", ("open rate",), FieldType.PERCENT),
            FieldSpec("click_rate", ("click-through rate", "click rate"), FieldType.PERCENT),
            FieldSpec("verified_click_rate", ("verified click-through rate", "verified click rate"), FieldType.PERCENT),
        ),
    ),
    ContentRule(
        platform=Platform.NEWSLETTER,
        content_kind=ContentKind.NEWSLETTER_SUBSCRIBERS,
        required_groups=(("acquisition source",), ("count",)),
        fields=(
            _date_field("created at", "created_at"),
            FieldSpec("acquisition_source", ("acquisition source",), FieldType.STRING),
            FieldSpec("new_subscribers", ("count",), required=True),
        ),
        aggregate_by_date=True,
        breakdown_field="acquisition_source",
        running_total=("new_subscribers", "subscribers"),
    ),
    # Twitter / X -----------------------------------------------------------
    ContentRule(
        platform=Platform.TWITTER,
        content_kind=ContentKind.TWITTER_POSTS,
        required_groups=(
            ("post id", "tweet id", "post link", "tweet permalink"),
            ("post text", "tweet text"),
            ("impressions",),
        ),
        fields=(
            FieldSpec("post_id", ("post id", "tweet id", "post link", "tweet permalink"), FieldType.STRING, required=True),
            FieldSpec("text", ("post text", "tweet text"), FieldType.STRING),
            FieldSpec("posted_at", ("date", "time"), FieldType.DATE),
            FieldSpec("impressions", ("impressions",)),
            FieldSpec("likes", ("likes",)),
            FieldSpec("engagements", ("engagements",)),
            FieldSpec("bookmarks", ("bookmarks",)),
            FieldSpec("shares", ("shares",)),
            FieldSpec("new_follows", ("new follows",)),
            FieldSpec("replies", ("replies",)),
            FieldSpec("reposts", ("reposts", "retweets")),
            FieldSpec("profile_visits", ("profile visits",)),
        ),
        date_field="posted_at",
        id_field="post_id",
        derive=derive_twitter_post,
        rollup_kind=ContentKind.TWITTER_DAILY,
        rollup_fields=(
            ("posts_impressions", ("impressions",)),
            ("posts_engagements", ("engagements",)),
        ),
    ),
    ContentRule(
        platform=Platform.TWITTER,
        content_kind=ContentKind.TWITTER_DAILY,
        required_groups=(DATE_TOKENS, ("impressions",), ("engagements", "likes")),
        forbidden_tokens=("post id", "tweet id", "post text", "tweet text"),
        fields=(
            _date_field(),
            FieldSpec("impressions", ("impressions",), required=True),
            FieldSpec("likes", ("likes",)),
            FieldSpec("engagements", ("engagements",)),
            FieldSpec("bookmarks", ("bookmarks",)),
            FieldSpec("shares", ("shares",)),
            FieldSpec("new_follows", ("new follows",)),
            FieldSpec("unfollows", ("unfollows",)),
            FieldSpec("replies", ("replies",)),
            FieldSpec("reposts", ("reposts", "retweets")),
            FieldSpec("profile_visits", ("profile visits",)),
            FieldSpec("video_views", ("video views",)),
        ),
        derive=derive_twitter_daily,
    ),
    # LinkedIn --------------------------------------------------------------
    ContentRule(
        platform=Platform.LINKEDIN,
        content_kind=ContentKind.LINKEDIN_POSTS,
        required_groups=(("post link", "post title"), ("created date", "date"), ("impressions",)),
        fields=(
            FieldSpec("post_id", ("post link", "post url"), FieldType.STRING, required=True),
            FieldSpec("title", ("post title",), FieldType.STRING),
            FieldSpec("post_type", ("post type", "content type"), FieldType.STRING),
            FieldSpec("posted_at", ("created date", "date"), FieldType.DATE),
            FieldSpec("impressions", ("impressions",)),
            FieldSpec("views", ("views",)),
            FieldSpec("clicks", ("clicks",)),
            FieldSpec("click_rate", ("click through rate (ctr)", "ctr"), FieldType.PERCENT),
            FieldSpec("likes", ("likes", "reactions")),
            FieldSpec("comments", ("comments",)),
            FieldSpec("reposts", ("reposts", "shares")),
            FieldSpec("follows", ("follows",)),
            FieldSpec("engagement_rate", ("engagement rate",), FieldType.PERCENT),
        ),
        date_field="posted_at",
        id_field="post_id",
    ),
    ContentRule(
        platform=Platform.LINKEDIN,
        content_kind=ContentKind.LINKEDIN_FOLLOWERS,
        required_groups=(DATE_TOKENS, ("total followers", "organic followers", "seguidores")),
        forbidden_tokens=("post link", "post title"),
        fields=(
            _date_field(),
            FieldSpec("total_followers", ("total followers", "seguidores"), required=True),
            FieldSpec("organic_followers", ("organic followers",)),
            FieldSpec("sponsored_followers", ("sponsored followers",)),
        ),
    ),
    ContentRule(
        platform=Platform.LINKEDIN,
        content_kind=ContentKind.LINKEDIN_DAILY,
        required_groups=(DATE_TOKENS, ("impressions", "impressoes"), ("reactions", "clicks", "reacoes", "cliques")),
        forbidden_tokens=("post link", "post title", "followers"),
        fields=(
            _date_field(),
            FieldSpec("impressions", ("impressions (total)", "impressions", "impressoes"), required=True),
            FieldSpec("unique_impressions", ("unique impressions (organic)", "unique impressions")),
            FieldSpec("clicks", ("clicks (total)", "clicks", "cliques")),
            FieldSpec("reactions", ("reactions (total)", "reactions", "reacoes")),
            FieldSpec("comments", ("comments (total)", "comments")),
            FieldSpec("reposts", ("reposts (total)", "reposts")),
            FieldSpec("engagement_rate", ("engagement rate (total)", "engagement rate"), FieldType.PERCENT),
        ),
    ),
    # Meta Ads --------------------------------------------------------------
    ContentRule(
        platform=Platform.META_ADS,
        content_kind=ContentKind.ADS,
        required_groups=(("nome do anuncio", "ad name"), META_METRIC_TOKENS),
        fields=(
            FieldSpec("ad_name", ("nome do anuncio", "ad name"), FieldType.STRING, required=True),
            FieldSpec("adset_name", ("nome do conjunto de anuncios", "nome do conjunto", "ad set name"), FieldType.STRING),
            FieldSpec("status", ("veiculacao", "delivery", "status"), FieldType.STRING),
            FieldSpec("results", ("resultados", "results")),
            FieldSpec("reach", ("alcance", "reach")),
            FieldSpec("impressions", ("impressoes", "impressions")),
            FieldSpec("cost_per_result", ("custo por resultado", "cost per result"), FieldType.CURRENCY),
            FieldSpec("amount_spent", ("valor usado", "amount spent", "gasto"), FieldType.CURRENCY),
            FieldSpec("quality_ranking", ("classificacao de qualidade", "quality ranking"), FieldType.STRING),
            FieldSpec("start_date", ("inicio dos relatorios", "reporting starts"), FieldType.DATE),
            FieldSpec("end_date", ("termino dos relatorios", "reporting ends"), FieldType.DATE),
        ),
        date_field="start_date",
        id_field="ad_name",
        id_prefix="ad",
    ),
    ContentRule(
        platform=Platform.META_ADS,
        content_kind=ContentKind.ADSETS,
        required_groups=(("nome do conjunto", "ad set name"), META_METRIC_TOKENS),
        forbidden_tokens=("nome do anuncio", "ad name", "classificacao de qualidade", "quality ranking"),
        fields=(
            FieldSpec("adset_name", ("nome do conjunto de anuncios", "nome do conjunto", "ad set name"), FieldType.STRING, required=True),
            FieldSpec("status", ("veiculacao", "delivery", "status"), FieldType.STRING),
            FieldSpec("bid", ("lance", "bid"), FieldType.CURRENCY),
            FieldSpec("budget", ("orcamento", "budget"), FieldType.CURRENCY),
            FieldSpec("results", ("resultados", "results")),
            FieldSpec("reach", ("alcance", "reach")),
            FieldSpec("impressions", ("impressoes", "impressions")),
            FieldSpec("cost_per_result", ("custo por resultado", "cost per result"), FieldType.CURRENCY),
            FieldSpec("amount_spent", ("valor usado", "amount spent", "gasto"), FieldType.CURRENCY),
            FieldSpec("start_date", ("inicio dos relatorios", "reporting starts"), FieldType.DATE),
            FieldSpec("end_date", ("termino dos relatorios", "reporting ends"), FieldType.DATE),
        ),
        date_field="start_date",
        id_field="adset_name",
        id_prefix="adset",
    ),
    ContentRule(
        platform=Platform.META_ADS,
        content_kind=ContentKind.CAMPAIGNS,
        required_groups=(("nome da campanha", "campaign name"), META_METRIC_TOKENS),
        forbidden_tokens=(
            "nome do conjunto",
            "ad set name",
            "nome do anuncio",
            "ad name",
            "classificacao de qualidade",
            "quality ranking",
        ),
        fields=(
            FieldSpec("campaign_name", ("nome da campanha", "campaign name"), FieldType.STRING, required=True),
            FieldSpec("status", ("veiculacao da campanha", "veiculacao", "delivery", "status"), FieldType.STRING),
            FieldSpec("budget", ("orcamento", "budget"), FieldType.CURRENCY),
            FieldSpec("results", ("resultados", "results")),
            FieldSpec("reach", ("alcance", "reach")),
            FieldSpec("impressions", ("impressoes", "impressions")),
            FieldSpec("cost_per_result", ("custo por resultado", "cost per result"), FieldType.CURRENCY),
            FieldSpec("amount_spent", ("valor usado", "amount spent", "gasto"), FieldType.CURRENCY),
            FieldSpec("start_date", ("inicio dos relatorios", "reporting starts"), FieldType.DATE),
            FieldSpec("end_date", ("termino dos relatorios", "reporting ends"), FieldType.DATE),
        ),
        date_field="start_date",
        id_field="campaign_name",
        id_prefix="campaign",
    ),
)

RULES_BY_KIND: Mapping[ContentKind, ContentRule] = {rule.content_kind: rule for rule in CONTENT_RULES}


def rules_for_platform(platform: Platform) -> tuple[ContentRule, ...]:
    return tuple(rule for rule in CONTENT_RULES if rule.platform == platform)


def get_rule(content_kind: ContentKind) -> ContentRule | None:
    return RULES_BY_KIND.get(content_kind)
