"""DreamSaver: goal-based savings with escrowed funds and tracked delivery."""
