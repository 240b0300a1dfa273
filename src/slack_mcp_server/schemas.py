"""Input models for every Slack MCP tool.

Each model doubles as the tool's JSON Schema (``model_json_schema()``) and as
the validator applied to incoming arguments. Unknown arguments are rejected.
"""

from datetime import date
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

# ---------- Pagination limits ----------

MAX_PAGES = 10
MAX_ITEMS = 1000
MAX_PAGES_LIMIT = 100
MAX_ITEMS_LIMIT = 10000

TS_PATTERN = r"^\d+(\.\d+)?$"


def _check_calendar_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"expected a valid YYYY-MM-DD date, got {value!r}") from e
    return value


def _check_safe_path(value: str) -> str:
    if ".." in value or "~" in value:
        raise ValueError("File path must not contain path traversal patterns")
    return value


DateString = Annotated[
    str,
    Field(pattern=r"^\d{4}-\d{2}-\d{2}$"),
    AfterValidator(_check_calendar_date),
]
SlackTs = Annotated[str, Field(pattern=TS_PATTERN)]

Channel = Annotated[str, Field(min_length=1, description="Channel ID (e.g., C1234567890)")]
ThreadTs = Annotated[
    SlackTs, Field(min_length=1, description="Thread timestamp (parent message timestamp, e.g. 1234567890.123456)")
]
MessageTs = Annotated[SlackTs, Field(min_length=1, description="Timestamp of the message (e.g. 1234567890.123456)")]
Cursor = Annotated[str | None, Field(description="Cursor for pagination")]


class ToolInput(BaseModel):
    """Base for tool arguments: unknown keys are a validation error."""

    model_config = ConfigDict(extra="forbid")


class PaginatedInput(ToolInput):
    """Arguments shared by tools that can walk several pages."""

    fetch_all_pages: Annotated[
        bool, Field(description="Whether to fetch all pages at once instead of single page")
    ] = False
    max_pages: Annotated[
        int | None,
        Field(ge=1, le=MAX_PAGES_LIMIT, description="Maximum number of pages to fetch when fetch_all_pages is true"),
    ] = None
    max_items: Annotated[
        int | None,
        Field(ge=1, le=MAX_ITEMS_LIMIT, description="Maximum total items to fetch when fetch_all_pages is true"),
    ] = None


class DateRangeInput(PaginatedInput):
    """Day-level or second-level time window; the two styles are mutually exclusive."""

    after_date: Annotated[
        DateString | None,
        Field(description="Start date in YYYY-MM-DD format, inclusive (00:00:00 UTC). Cannot be used with oldest_ts."),
    ] = None
    before_date: Annotated[
        DateString | None,
        Field(description="End date in YYYY-MM-DD format, inclusive (23:59:59 UTC). Cannot be used with latest_ts."),
    ] = None
    oldest_ts: Annotated[
        SlackTs | None,
        Field(description="Start Unix timestamp in seconds. Cannot be used with after_date."),
    ] = None
    latest_ts: Annotated[
        SlackTs | None,
        Field(description="End Unix timestamp in seconds. Cannot be used with before_date."),
    ] = None

    @model_validator(mode="after")
    def _check_exclusive_range(self):
        if self.after_date and self.oldest_ts:
            raise ValueError("Cannot specify both after_date and oldest_ts. Use date strings OR timestamps, not both.")
        if self.before_date and self.latest_ts:
            raise ValueError("Cannot specify both before_date and latest_ts. Use date strings OR timestamps, not both.")
        return self


# ---------- Messages ----------


class SendMessageInput(ToolInput):
    channel: Annotated[str, Field(min_length=1, description="Channel ID or user ID to send message to")]
    text: Annotated[str, Field(min_length=1, description="Message text to send. Supports Slack markdown formatting.")]
    thread_ts: Annotated[SlackTs | None, Field(description="Thread timestamp to reply to a specific message")] = None


class ListChannelsInput(PaginatedInput):
    types: Annotated[str, Field(description="Comma-separated list of channel types to include")] = (
        "public_channel,private_channel"
    )
    exclude_archived: Annotated[bool, Field(description="Whether to exclude archived channels")] = True
    limit: Annotated[int, Field(ge=1, le=200, description="Number of channels to retrieve per page (1-200)")] = 100
    cursor: Cursor = None
    name_filter: Annotated[
        str | None, Field(description="Filter channels by name (case-insensitive substring match)")
    ] = None


class GetChannelHistoryInput(DateRangeInput):
    channel: Channel
    limit: Annotated[int, Field(ge=1, le=1000, description="Number of messages to retrieve per page (1-1000)")] = 100
    cursor: Cursor = None


class GetUserInfoInput(ToolInput):
    user: Annotated[str, Field(min_length=1, description="User ID to get information about (e.g., U1234567890)")]


class SearchMessagesInput(ToolInput):
    query: Annotated[str, Field(min_length=1, description="Search query string")]
    sort: Annotated[Literal["score", "timestamp"], Field(description="Sort order for results")] = "score"
    sort_dir: Annotated[Literal["asc", "desc"], Field(description="Sort direction")] = "desc"
    count: Annotated[int, Field(ge=1, le=100, description="Number of results to return (1-100)")] = 20
    page: Annotated[int, Field(ge=1, le=100, description="Page number for pagination")] = 1
    highlight: Annotated[bool, Field(description="Whether to highlight search terms")] = False
    after: Annotated[DateString | None, Field(description="Search after this date (YYYY-MM-DD)")] = None
    before: Annotated[DateString | None, Field(description="Search before this date (YYYY-MM-DD)")] = None


class GetChannelInfoInput(ToolInput):
    channel: Channel


# ---------- Threads ----------


class FindThreadsInChannelInput(DateRangeInput):
    channel: Channel
    limit: Annotated[int, Field(ge=1, le=200, description="Maximum number of parent messages to examine (1-200)")] = 50
    cursor: Cursor = None
    include_all_metadata: Annotated[bool, Field(description="Include additional metadata in response")] = False


class GetThreadRepliesInput(DateRangeInput):
    channel: Channel
    thread_ts: ThreadTs
    limit: Annotated[int, Field(ge=1, le=1000, description="Maximum number of messages to retrieve per page")] = 100
    cursor: Cursor = None
    inclusive: Annotated[bool, Field(description="Include messages with matching timestamps")] = True


class SearchThreadsInput(ToolInput):
    query: Annotated[str, Field(min_length=1, description="Search query string")]
    channel: Annotated[str | None, Field(description="Limit search to specific channel")] = None
    user: Annotated[str | None, Field(description="Filter by messages from specific user")] = None
    after: Annotated[DateString | None, Field(description="Search after this date (YYYY-MM-DD)")] = None
    before: Annotated[DateString | None, Field(description="Search before this date (YYYY-MM-DD)")] = None
    sort: Annotated[Literal["timestamp", "relevance"], Field(description="Sort results by timestamp or relevance")] = (
        "relevance"
    )
    sort_dir: Annotated[Literal["asc", "desc"], Field(description="Sort direction")] = "desc"
    limit: Annotated[int, Field(ge=1, le=100, description="Maximum number of results (1-100)")] = 20


class AnalyzeThreadInput(ToolInput):
    channel: Channel
    thread_ts: ThreadTs
    include_sentiment_analysis: Annotated[bool, Field(description="Include sentiment analysis in results")] = True
    include_action_items: Annotated[bool, Field(description="Extract action items from thread")] = True
    include_timeline: Annotated[bool, Field(description="Include detailed timeline of events")] = True
    extract_topics: Annotated[bool, Field(description="Extract key topics and keywords")] = True


class SummarizeThreadInput(ToolInput):
    channel: Channel
    thread_ts: ThreadTs
    summary_length: Annotated[
        Literal["brief", "detailed", "comprehensive"], Field(description="Desired summary length")
    ] = "detailed"
    include_action_items: Annotated[bool, Field(description="Include extracted action items")] = True
    include_decisions: Annotated[bool, Field(description="Include decisions made in the thread")] = True
    language: Annotated[str, Field(description="Summary language (ISO 639-1 code)")] = "en"


class PostThreadReplyInput(ToolInput):
    channel: Channel
    thread_ts: ThreadTs
    text: Annotated[str, Field(min_length=1, description="Reply message text (supports Slack markdown)")]
    broadcast: Annotated[
        bool, Field(description="Broadcast reply to channel (deprecated, use reply_broadcast)")
    ] = False
    reply_broadcast: Annotated[bool, Field(description="Broadcast reply to the channel")] = False


class CreateThreadInput(ToolInput):
    channel: Channel
    text: Annotated[str, Field(min_length=1, description="Initial parent message text")]
    reply_text: Annotated[str | None, Field(description="Optional first reply to start the thread")] = None
    broadcast: Annotated[bool, Field(description="Broadcast the initial reply to channel")] = False


ImportanceLevel = Literal["low", "medium", "high", "critical"]


class MarkThreadImportantInput(ToolInput):
    channel: Channel
    thread_ts: ThreadTs
    importance_level: Annotated[ImportanceLevel, Field(description="Level of importance")] = "high"
    reason: Annotated[str | None, Field(description="Optional reason for marking as important")] = None
    notify_participants: Annotated[bool, Field(description="Notify all thread participants")] = False


class ExtractActionItemsInput(ToolInput):
    channel: Channel
    thread_ts: ThreadTs
    include_completed: Annotated[bool, Field(description="Include completed action items")] = False
    priority_threshold: Annotated[
        Literal["low", "medium", "high"], Field(description="Minimum priority level to include")
    ] = "low"
    assign_priorities: Annotated[bool, Field(description="Automatically assign priorities based on content")] = True


ImportanceCriterion = Literal[
    "participant_count",
    "message_count",
    "urgency_keywords",
    "executive_involvement",
    "mention_frequency",
    "tf_idf_relevance",
    "time_decay",
    "engagement_metrics",
]


class IdentifyImportantThreadsInput(ToolInput):
    channel: Channel
    time_range_hours: Annotated[
        int, Field(ge=1, le=8760, description="Look back this many hours for threads (1-8760)")
    ] = 168
    importance_threshold: Annotated[
        float, Field(ge=0, le=1, description="Minimum importance score (0.0-1.0)")
    ] = 0.7
    criteria: Annotated[
        list[ImportanceCriterion] | None, Field(description="Criteria to use for identifying important threads")
    ] = None
    limit: Annotated[int, Field(ge=1, le=50, description="Maximum number of threads to return (1-50)")] = 10


class ExportThreadInput(ToolInput):
    channel: Channel
    thread_ts: ThreadTs
    format: Annotated[Literal["markdown", "json", "html", "csv"], Field(description="Export format")] = "markdown"
    include_metadata: Annotated[bool, Field(description="Include message metadata (timestamps, user IDs)")] = True
    include_reactions: Annotated[bool, Field(description="Include message reactions")] = True
    include_user_profiles: Annotated[bool, Field(description="Include detailed user profile information")] = False
    date_format: Annotated[
        str, Field(description="Date format for timestamps: 'ISO', 'unix' or a strftime pattern")
    ] = "ISO"


RelationshipType = Literal["keyword_overlap", "participant_overlap", "temporal_proximity", "topic_similarity"]


class FindRelatedThreadsInput(ToolInput):
    channel: Channel
    thread_ts: ThreadTs
    similarity_threshold: Annotated[
        float, Field(ge=0, le=1, description="Minimum similarity score (0.0-1.0)")
    ] = 0.3
    max_results: Annotated[
        int, Field(ge=1, le=50, description="Maximum number of related threads to return (1-50)")
    ] = 10
    include_cross_channel: Annotated[bool, Field(description="Include threads from other channels")] = False
    relationship_types: Annotated[
        list[RelationshipType] | None, Field(description="Types of relationships to consider")
    ] = None


class GetThreadMetricsInput(ToolInput):
    channel: Annotated[str | None, Field(description="Channel ID to analyze")] = None
    user: Annotated[str | None, Field(description="Filter metrics for specific user")] = None
    after: Annotated[DateString | None, Field(description="Start date for metrics (YYYY-MM-DD)")] = None
    before: Annotated[DateString | None, Field(description="End date for metrics (YYYY-MM-DD)")] = None
    include_activity_patterns: Annotated[
        bool, Field(description="Include activity patterns by time of day")
    ] = True
    include_participant_stats: Annotated[bool, Field(description="Include top participants statistics")] = True
    time_zone: Annotated[str, Field(description="Timezone for activity patterns (IANA name)")] = "UTC"


class GetThreadsByParticipantsInput(ToolInput):
    participants: Annotated[
        list[str], Field(min_length=1, description="User IDs of participants to search for")
    ]
    channel: Annotated[str | None, Field(description="Limit search to specific channel")] = None
    after: Annotated[DateString | None, Field(description="Search after this date (YYYY-MM-DD)")] = None
    before: Annotated[DateString | None, Field(description="Search before this date (YYYY-MM-DD)")] = None
    limit: Annotated[int, Field(ge=1, le=100, description="Maximum number of threads to return (1-100)")] = 20
    require_all_participants: Annotated[
        bool, Field(description="Require ALL participants to be in thread (vs ANY)")
    ] = False


# ---------- Files ----------


class UploadFileInput(ToolInput):
    file_path: Annotated[
        str,
        Field(min_length=1, max_length=4096, description="Local path to the file to upload"),
        AfterValidator(_check_safe_path),
    ]
    filename: Annotated[str | None, Field(max_length=255, description="Filename to use in Slack")] = None
    title: Annotated[str | None, Field(max_length=255, description="Title for the file")] = None
    channels: Annotated[
        list[str] | None, Field(max_length=10, description="Channels to share the file to (channel IDs)")
    ] = None
    initial_comment: Annotated[
        str | None, Field(max_length=8000, description="Initial comment for the file")
    ] = None
    thread_ts: Annotated[SlackTs | None, Field(description="Thread timestamp to upload to a thread")] = None


class ListFilesInput(PaginatedInput):
    user: Annotated[str | None, Field(description="Filter by user who uploaded the file")] = None
    channel: Annotated[str | None, Field(description="Filter by channel where file was shared")] = None
    types: Annotated[
        str | None, Field(description="Comma-separated list of file types to include (e.g., 'images,pdfs')")
    ] = None
    after_date: Annotated[
        DateString | None, Field(description="Start date in YYYY-MM-DD format. Cannot be used with ts_from.")
    ] = None
    before_date: Annotated[
        DateString | None, Field(description="End date in YYYY-MM-DD format. Cannot be used with ts_to.")
    ] = None
    ts_from: Annotated[SlackTs | None, Field(description="Filter files created after this Unix timestamp")] = None
    ts_to: Annotated[SlackTs | None, Field(description="Filter files created before this Unix timestamp")] = None
    count: Annotated[int, Field(ge=1, le=1000, description="Number of files to return per page (1-1000)")] = 100
    page: Annotated[int, Field(ge=1, description="Page number for pagination")] = 1

    @model_validator(mode="after")
    def _check_exclusive_range(self):
        if self.after_date and self.ts_from:
            raise ValueError("Cannot specify both after_date and ts_from. Use date strings OR timestamps, not both.")
        if self.before_date and self.ts_to:
            raise ValueError("Cannot specify both before_date and ts_to. Use date strings OR timestamps, not both.")
        return self


class GetFileInfoInput(ToolInput):
    file_id: Annotated[str, Field(min_length=1, description="File ID to get information about")]
    include_comments: Annotated[bool, Field(description="Include file comments in response")] = False


class DeleteFileInput(ToolInput):
    file_id: Annotated[str, Field(min_length=1, description="File ID to delete")]


class ShareFileInput(ToolInput):
    file_id: Annotated[str, Field(min_length=1, description="File ID to share")]
    channel: Channel


class AnalyzeFilesInput(ToolInput):
    channel: Annotated[str | None, Field(description="Limit analysis to specific channel")] = None
    user: Annotated[str | None, Field(description="Limit analysis to specific user")] = None
    days_back: Annotated[int, Field(ge=1, le=365, description="Number of days back to analyze (1-365)")] = 30
    include_large_files: Annotated[bool, Field(description="Include analysis of large files")] = True
    size_threshold_mb: Annotated[
        float, Field(gt=0, description="Size threshold in MB for identifying large files")
    ] = 10


class SearchFilesInput(PaginatedInput):
    query: Annotated[str, Field(min_length=1, description="Search query (filename, content, or keywords)")]
    types: Annotated[str | None, Field(description="Comma-separated file types to search")] = None
    user: Annotated[str | None, Field(description="Filter by user who uploaded")] = None
    channel: Annotated[str | None, Field(description="Filter by channel where shared")] = None
    after: Annotated[DateString | None, Field(description="Search files after date (YYYY-MM-DD)")] = None
    before: Annotated[DateString | None, Field(description="Search files before date (YYYY-MM-DD)")] = None
    count: Annotated[int, Field(ge=1, le=100, description="Number of results to return (1-100)")] = 20


class GetMessageImagesInput(ToolInput):
    channel: Channel
    message_ts: MessageTs
    include_image_data: Annotated[
        bool, Field(description="Whether to include Base64-encoded image data in the response")
    ] = False


# ---------- Reactions ----------


class ReactionTargetInput(ToolInput):
    channel: Annotated[str, Field(min_length=1, description="Channel where the message is located")]
    message_ts: MessageTs


class AddReactionInput(ReactionTargetInput):
    reaction_name: Annotated[
        str, Field(min_length=1, description="Name of reaction emoji (without colons, e.g., 'thumbsup')")
    ]


class RemoveReactionInput(ReactionTargetInput):
    reaction_name: Annotated[str, Field(min_length=1, description="Name of reaction emoji to remove (without colons)")]


class GetReactionsInput(ReactionTargetInput):
    full: Annotated[bool, Field(description="Include full user info for reaction users")] = False


class GetReactionStatisticsInput(ToolInput):
    channel: Annotated[str | None, Field(description="Limit statistics to specific channel")] = None
    user: Annotated[str | None, Field(description="Limit statistics to specific user")] = None
    days_back: Annotated[int, Field(ge=1, le=365, description="Number of days back to analyze (1-365)")] = 30
    include_trends: Annotated[bool, Field(description="Include daily trends analysis")] = True
    top_count: Annotated[int, Field(ge=1, description="Number of top reactions/users to include")] = 10


class FindMessagesByReactionsInput(ToolInput):
    reactions: Annotated[list[str], Field(min_length=1, description="Reaction names to search for")]
    channel: Annotated[str | None, Field(description="Limit search to specific channel")] = None
    match_type: Annotated[
        Literal["any", "all"], Field(description="Match any of the reactions or all of them")
    ] = "any"
    min_reaction_count: Annotated[int, Field(ge=0, description="Minimum total reactions required")] = 1
    after: Annotated[DateString | None, Field(description="Search messages after date (YYYY-MM-DD)")] = None
    before: Annotated[DateString | None, Field(description="Search messages before date (YYYY-MM-DD)")] = None
    limit: Annotated[int, Field(ge=1, le=100, description="Maximum number of messages to return (1-100)")] = 20


# ---------- Workspace ----------


class GetWorkspaceInfoInput(ToolInput):
    pass


class ListTeamMembersInput(PaginatedInput):
    include_deleted: Annotated[bool, Field(description="Include deleted users in results")] = False
    include_bots: Annotated[bool, Field(description="Include bot users in results")] = True
    include_profile_details: Annotated[
        bool,
        Field(description="Include detailed profile information. When false, returns only core fields and one image"),
    ] = True
    cursor: Cursor = None
    limit: Annotated[int, Field(ge=1, le=200, description="Maximum number of members to return per page")] = 100


class GetWorkspaceActivityInput(DateRangeInput):
    include_user_details: Annotated[bool, Field(description="Include detailed user activity breakdown")] = True
    include_channel_details: Annotated[bool, Field(description="Include detailed channel activity breakdown")] = True
    top_count: Annotated[int, Field(ge=1, description="Number of top users/channels to include")] = 10


class GetServerHealthInput(ToolInput):
    include_rate_limits: Annotated[bool, Field(description="Include current rate limit status")] = True
    include_response_times: Annotated[bool, Field(description="Include API response time statistics")] = True
