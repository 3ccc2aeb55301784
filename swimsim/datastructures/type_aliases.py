"""
Semantic type aliases for swimsim datastructures.

These aliases keep signatures self-documenting: a member identifier, an
incarnation number and a round counter are all plain integers on the wire
but mean very different things.
"""

# Member identity and generation
type MemberId = int
type IncarnationNumber = int
type MaybeIncarnation = int | None  # None marks a member that is dead for the run

# Protocol bookkeeping
type RoundNumber = int
type RequestId = int
type StepNumber = int
type DisseminationCount = int
type SuspicionCountdown = int

# Statistics
type MetricName = str
type MetricValue = int
