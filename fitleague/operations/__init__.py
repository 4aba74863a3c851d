"""
Operations Layer

Business logic composed over the database layer. Operations own multi-step
transactions, validation and lifecycle rules:

- SubmissionOperations: daily entries, overwrite window and reviews
- ChallengeOperations: challenge entries, capped awards and publishing
"""
