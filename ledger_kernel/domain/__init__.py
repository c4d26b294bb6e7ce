"""Pure domain layer: enums, DTOs, constants and the injectable clock."""
