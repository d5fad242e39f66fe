"""Feed assemblers: raw model streams in, complete instructions out."""
