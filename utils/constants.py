"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Button labels and role names
- Report line format

(Prevents hardcoding across the codebase)
"""

# ============================================================
# MAIN MENU
# ============================================================

WELCOME_MESSAGE = "👋 Hi {first_name}! Welcome to the squad session bot."

MAIN_MENU_MESSAGE = "Main menu:"

NO_GROUPS_MESSAGE = (
    "I'm not in any group yet. Please add me to your squad's group first."
)

MULTIPLE_GROUPS_MESSAGE = (
    "I'm a member of {count} groups: {titles}\n\n"
    "Showing the first one for now."
)

BOT_ADDED_MESSAGE = (
    "Hello! I keep track of session payments for this squad. "
    "Message me privately to register."
)

BUTTON_REGISTER = "📝 Register"
BUTTON_EDIT_PROFILE = "✏️ Edit profile"
BUTTON_INVOICE = "💰 My invoice"
BUTTON_SET_RATES = "💵 Set rates"
BUTTON_SETTLE = "✅ Settle a member"
BUTTON_BACK = "🔙 Back"

# ============================================================
# ROLES
# ============================================================

ROLE_NAMES = {
    "admin": "Admin",
    "student": "Student",
    "adult": "Adult",
    "half_adult": "Half adult",
}

ROLE_BUTTON_LABELS = {
    "admin": "🛡 Admin",
    "student": "🎓 Student",
    "adult": "👤 Adult",
    "half_adult": "👦 Half adult",
}

# ============================================================
# PROMPTS (re-sent when the answer is invalid)
# ============================================================

PROMPT_ENTER_NAME = "Please enter your name:"
PROMPT_ENTER_NEW_NAME = "Please enter your new name:"
PROMPT_SELECT_ROLE = "Please choose your role:"
PROMPT_ENTER_RATE = "Please enter the price per session for {role} ({currency}):"
PROMPT_ENTER_SETTLE_SESSIONS = "How many sessions were paid for?"
PROMPT_SELECT_RATE_ROLE = "Choose a role to set its rate:"
PROMPT_SELECT_SETTLE_MEMBER = "Choose the member to settle:"

INVALID_NAME_MESSAGE = "Please enter a valid name:"
INVALID_NUMBER_MESSAGE = "Please enter a valid number:"

# ============================================================
# CONFIRMATIONS
# ============================================================

REGISTRATION_DONE_MESSAGE = "✅ Registration complete!\n\nName: {name}\nRole: {role}"

RATE_SET_MESSAGE = "✅ Rate for {role} set to {price:,.0f} {currency}."

SETTLE_OWED_MESSAGE = (
    "✅ Settlement recorded.\n\n"
    "Member: {name}\n"
    "Sessions settled: {count}\n"
    "Sessions remaining: {balance}\n"
    "Remaining debt: {debt:,.0f} {currency}"
)

SETTLE_CREDIT_MESSAGE = (
    "✅ Settlement recorded.\n\n"
    "Member: {name}\n"
    "Sessions settled: {count}\n"
    "Sessions in credit: {credit}"
)

SETTLE_CLEAR_MESSAGE = (
    "✅ Settlement recorded.\n\n"
    "Member: {name}\n"
    "Sessions settled: {count}\n"
    "Account is fully settled."
)

INVOICE_MESSAGE = (
    "💰 *Invoice*\n\n"
    "Name: {name}\n"
    "Role: {role}\n"
    "Sessions: {sessions}\n"
    "Rate per session: {rate:,.0f} {currency}\n"
    "Total due: {total:,.0f} {currency}"
)

# ============================================================
# SETTLEMENT PICKER
# ============================================================

SETTLE_BUTTON_OWED = "{name} - {sessions} session(s)"
SETTLE_BUTTON_CREDIT = "{name} - {sessions} session(s) in credit"
SETTLE_BUTTON_SETTLED = "{name} - settled"
NO_MEMBERS_MESSAGE = "No one has registered in this group yet."

# ============================================================
# GROUP COMMANDS
# ============================================================

ATTENDANCE_USAGE_MESSAGE = (
    "Please list the members' usernames.\n"
    "Example: /attendance @user1 @user2 @user3"
)
ATTENDANCE_DONE_MESSAGE = "✅ Attendance recorded.\n\nMembers credited: {count}"
ATTENDANCE_NOBODY_MESSAGE = "No registered members matched those usernames."

UNDO_DONE_MESSAGE = "↩️ Attendance from {created_at} reverted for {count} member(s)."
UNDO_NOTHING_MESSAGE = "There is no attendance to undo."
ALREADY_REVERTED_MESSAGE = "That attendance was already reverted."

REPORT_HEADER = "📊 Session balances\n"
REPORT_EMPTY_MESSAGE = "No one has registered in this group yet."

# "<name> = <balance>" plus a marker for credit / settled
REPORT_LINE = "• {name} = {balance} {suffix}"
REPORT_SUFFIXES = {
    "owed": "",
    "credit": "❤️",
    "settled": "✅",
}

# ============================================================
# ERRORS
# ============================================================

NOT_ADMIN_MESSAGE = "⛔ You don't have admin access."
GROUP_NOT_REGISTERED_MESSAGE = "This group is not registered with the bot."
NOT_REGISTERED_MESSAGE = "You have not registered in this group."
GENERIC_ERROR_MESSAGE = "❌ Something went wrong. Please try again."
