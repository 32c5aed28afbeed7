"""Meeting scheduler: working-hours availability and Google Meet bookings."""
