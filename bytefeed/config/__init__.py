"""Named defaults shared across components."""
