# Help text shown when a chat command matches no rule
HELP_MESSAGE = """I can add/edit/delete/split tasks, mark them done, and report productivity.
Try:
• add task study react november 12 2-4pm urgent somewhat important
• edit study react to nov 13 3-5pm
• delete study react
• delete segments of study react
• split study react into 3 with 10m breaks
• mark segment 2 of study react completed
• mark study react missed
• what's my productivity
• what's my schedule tomorrow
• schedule for nov 10"""

# Default system prompt for the /api/llm pass-through when the caller sends none.
# The scheduler's own command handling never goes through the model.
SYSTEM_PROMPT = """You are a friendly scheduling assistant for a personal task planner.
Tasks have a title, a start and end time, importance (high/low), urgency (high/low)
and difficulty (easy/medium/hard). Long tasks can be split into segments with breaks.

Today's date is: {today} (timezone {timezone})

When the user asks to change their schedule, suggest the exact command they can type, e.g.:
- "add task <title> <month> <day> <h>-<h>pm [urgent] [important] [easy|hard]"
- "split <title> into <n> with <m>m breaks"
- "mark segment <n> of <title> completed"

Keep answers short."""
