# Governance record and analytics schemas
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class VoteOption(str, enum.Enum):
    """Closed set of vote options. OTHER absorbs WEIGHTED_VOTE/UNKNOWN."""
    YES = "YES"
    NO = "NO"
    ABSTAIN = "ABSTAIN"
    NO_WITH_VETO = "NO_WITH_VETO"
    NO_VOTE = "NO_VOTE"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, raw: Any) -> "VoteOption":
        """Map a raw option (name, VOTE_OPTION_* or numeric code) to the enum."""
        if isinstance(raw, VoteOption):
            return raw
        if raw is None:
            return cls.OTHER
        if isinstance(raw, bool):
            return cls.OTHER
        if isinstance(raw, (int, float)):
            return VOTE_CODES.get(int(raw), cls.OTHER) if float(raw).is_integer() else cls.OTHER

        text = str(raw).strip().upper()
        if text.isdigit():
            return VOTE_CODES.get(int(text), cls.OTHER)
        if text.startswith("VOTE_OPTION_"):
            text = text[len("VOTE_OPTION_"):]
        try:
            return cls(text)
        except ValueError:
            return cls.OTHER


# Numeric codes used by the optimized per-chain vote CSVs
VOTE_CODES: Dict[int, VoteOption] = {
    0: VoteOption.ABSTAIN,
    1: VoteOption.NO,
    2: VoteOption.NO_VOTE,
    3: VoteOption.NO_WITH_VETO,
    4: VoteOption.OTHER,  # WEIGHTED_VOTE
    5: VoteOption.YES,
}

# Options that carry power into a tally
TALLY_OPTIONS = (VoteOption.YES, VoteOption.NO, VoteOption.NO_WITH_VETO, VoteOption.ABSTAIN)

# Options bucketed by the category/topic distributions
DISTRIBUTION_OPTIONS = (
    VoteOption.YES,
    VoteOption.NO,
    VoteOption.ABSTAIN,
    VoteOption.NO_WITH_VETO,
    VoteOption.NO_VOTE,
)

UNKNOWN_LABEL = "Unknown"

SimilarityModeName = Literal["common", "base", "comprehensive"]
ApprovalRateBasis = Literal["vote_power", "vote_count"]
VotingPowerMode = Literal["percentile", "rank"]
ValidatorSortKey = Literal["vote_count", "name", "voting_power"]


class SimilarityMode(str, enum.Enum):
    """Comparison universe used by the similarity engine."""
    COMMON = "common"
    BASE = "base"
    COMPREHENSIVE = "comprehensive"


# ==================
# Input Records
# ==================

class Proposal(BaseModel):
    """A governance proposal. Belongs to exactly one chain."""
    proposal_id: str
    chain: str
    title: str = ""
    category: Optional[str] = None
    topic: Optional[str] = None
    submit_time: Optional[float] = None  # epoch milliseconds
    passed: bool = False
    final_tally: Dict[str, float] = Field(default_factory=dict)  # yes_count, no_count, ...

    model_config = {"frozen": True}

    @property
    def category_label(self) -> str:
        return self.category or UNKNOWN_LABEL

    @property
    def topic_label(self) -> str:
        return self.topic or UNKNOWN_LABEL


class Validator(BaseModel):
    """A validator scoped to one chain."""
    validator_id: str
    chain: str
    moniker: Optional[str] = ""
    address: str = ""

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        return self.moniker or UNKNOWN_LABEL


class Vote(BaseModel):
    """A single validator vote on a proposal. voting_power is kept as received."""
    proposal_id: str
    validator_id: str
    option: VoteOption
    voting_power: Optional[Union[float, str]] = None
    timestamp: Optional[float] = None

    model_config = {"frozen": True}

    @field_validator("option", mode="before")
    @classmethod
    def _parse_option(cls, v: Any) -> VoteOption:
        return VoteOption.parse(v)


class ChainDataset(BaseModel):
    """All raw records loaded for one chain."""
    chain: str
    proposals: List[Proposal] = Field(default_factory=list)
    validators: List[Validator] = Field(default_factory=list)
    votes: List[Vote] = Field(default_factory=list)


# ==================
# Derived Aggregates
# ==================

@dataclass(frozen=True)
class PowerTally:
    """Voting power summed per tallied option for one proposal."""
    yes: float = 0.0
    no: float = 0.0
    veto: float = 0.0
    abstain: float = 0.0

    @property
    def total(self) -> float:
        return self.yes + self.no + self.veto + self.abstain

    def power_for(self, option: VoteOption) -> float:
        return {
            VoteOption.YES: self.yes,
            VoteOption.NO: self.no,
            VoteOption.NO_WITH_VETO: self.veto,
            VoteOption.ABSTAIN: self.abstain,
        }.get(option, 0.0)

    def share_of(self, option: VoteOption) -> Optional[float]:
        """Power share of a tallied option, None when it has no share."""
        total = self.total
        if total <= 0 or option not in TALLY_OPTIONS:
            return None
        return self.power_for(option) / total


def _empty_count_map() -> Dict[str, int]:
    return {option.value: 0 for option in DISTRIBUTION_OPTIONS}


def _empty_power_map() -> Dict[str, float]:
    return {option.value: 0.0 for option in DISTRIBUTION_OPTIONS}


class CategoryDistribution(BaseModel):
    """Rollup of proposals and votes for one category."""
    count: int = 0
    pass_count: int = Field(0, alias="passCount")
    pass_rate: float = Field(0.0, alias="passRate")
    vote_distribution: Dict[str, int] = Field(default_factory=_empty_count_map, alias="voteDistribution")
    voting_power_distribution: Dict[str, float] = Field(
        default_factory=_empty_power_map, alias="votingPowerDistribution"
    )

    model_config = {"populate_by_name": True}


class TopicDistribution(CategoryDistribution):
    """Rollup for one topic, tagged with its owning category."""
    category: str = UNKNOWN_LABEL


class DistributionSummary(BaseModel):
    """Per-category and per-topic distributions for one chain selection."""
    categories: Dict[str, CategoryDistribution] = Field(default_factory=dict)
    topics: Dict[str, TopicDistribution] = Field(default_factory=dict)

    def to_json_dict(self) -> Dict[str, Any]:
        """Camel-cased dict ready for static serving."""
        return self.model_dump(by_alias=True)


class TopicNode(BaseModel):
    name: str
    count: int
    pass_rate: float = Field(alias="passRate")
    vote_distribution: Dict[str, float] = Field(default_factory=dict, alias="voteDistribution")

    model_config = {"populate_by_name": True}


class CategoryHierarchyNode(BaseModel):
    name: str
    count: int
    pass_rate: float = Field(alias="passRate")
    vote_distribution: Dict[str, float] = Field(default_factory=dict, alias="voteDistribution")
    topics: List[TopicNode] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


# ==================
# Filtering
# ==================

class FilterSpec(BaseModel):
    """Multi-dimensional filter over one chain's records."""
    chain: str
    categories: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    search_term: str = ""
    submit_time_range: Optional[Tuple[float, float]] = None
    approval_rate_range: Tuple[float, float] = (0.0, 100.0)
    approval_rate_basis: ApprovalRateBasis = "vote_power"
    exclude_abstain_no_vote: bool = False
    voting_power_mode: VotingPowerMode = "percentile"
    voting_power_range: Optional[Tuple[float, float]] = None
    participation_rate_range: Tuple[float, float] = (0.0, 100.0)
    count_no_vote_as_participation: bool = True
    consider_active_period_only: bool = False
    pinned_validator_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_ranges(self) -> "FilterSpec":
        if not self.chain:
            raise ValueError("chain is required")
        for name in ("submit_time_range", "approval_rate_range", "voting_power_range", "participation_rate_range"):
            bounds = getattr(self, name)
            if bounds is not None and bounds[0] > bounds[1]:
                raise ValueError(f"{name} lower bound {bounds[0]} exceeds upper bound {bounds[1]}")
        return self


class ValidatorMetrics(BaseModel):
    """A validator with metrics derived from the current filter scope."""
    validator_id: str
    chain: str
    moniker: Optional[str] = ""
    address: str = ""
    avg_power: float = 0.0
    total_power: float = 0.0
    vote_count: int = 0
    participation_rate: float = 0.0
    power_rank: int = 0
    power_percentile: float = 0.0
    is_pinned_and_filtered_out: bool = False


class FilterResult(BaseModel):
    """Scoped subsets plus derived validator metrics."""
    chain: str
    proposals: List[Proposal] = Field(default_factory=list)
    validators: List[ValidatorMetrics] = Field(default_factory=list)
    votes: List[Vote] = Field(default_factory=list)
    eligible_proposal_count: int = 0
    participation_rate_dynamic_range: Tuple[float, float] = (0.0, 100.0)
    avg_power_dynamic_range: Tuple[float, float] = (0.0, 0.0)


class SimilarityOptions(BaseModel):
    """Knobs for one similarity query."""
    mode: SimilarityMode = SimilarityMode.COMMON
    apply_recency_weight: bool = False
    match_abstain_in_similarity: bool = False
