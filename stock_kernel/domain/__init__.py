"""Pure domain layer: clock, decimal arithmetic, DTOs, state machines."""
