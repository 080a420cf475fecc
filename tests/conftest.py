# conftest.py(tests)

# 失敗したテストの行数をFAILURES WITH LINE NUMBERSに追加表示するカスタムプラグイン
def pytest_terminal_summary(terminalreporter):
    reports = terminalreporter.getreports("failed")
    if reports:
        terminalreporter.section("FAILURES WITH LINE NUMBERS")
        for report in reports:
            file_name = report.location[0]
            line_number = report.location[1] + 1  # locationは0始まり
            test_name = report.nodeid.split("::")[-1]
            terminalreporter.line(f"FAILED {file_name}:{line_number} <=(click to jump) {test_name}")
