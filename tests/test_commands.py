"""Tests for compound command splitting and wrapper unwrapping."""

from gatekeeper.approvals import expand_sub_commands, split_compound_command, tokenize, unwrap_command


class TestSplitCompoundCommand:
    """Tests for splitting command lines into sub-commands."""

    def test_splits_on_and(self):
        """Test splits on and."""
        assert split_compound_command("cd /foo && ls") == ["cd /foo", "ls"]

    def test_splits_on_or(self):
        """Test splits on or."""
        assert split_compound_command("test -f x || echo missing") == ["test -f x", "echo missing"]

    def test_splits_on_semicolon(self):
        """Test splits on semicolon."""
        assert split_compound_command("echo a; echo b") == ["echo a", "echo b"]

    def test_splits_on_pipe(self):
        """Test splits on pipe."""
        assert split_compound_command("ls | grep foo") == ["ls", "grep foo"]

    def test_mixed_operators(self):
        """Test mixed operators."""
        assert split_compound_command("a && b | c; d || e") == ["a", "b", "c", "d", "e"]

    def test_double_quotes_protect_operators(self):
        """Test double quotes protect operators."""
        assert split_compound_command('echo "a && b"') == ['echo "a && b"']

    def test_single_quotes_protect_operators(self):
        """Test single quotes protect operators."""
        assert split_compound_command("echo 'a || b'") == ["echo 'a || b'"]

    def test_backslash_escape(self):
        """Test backslash escape."""
        assert split_compound_command(r"echo a\;b") == [r"echo a\;b"]

    def test_empty_and_whitespace(self):
        """Test empty and whitespace."""
        assert split_compound_command("") == []
        assert split_compound_command("   ") == []

    def test_trims_and_drops_empty_parts(self):
        """Test trims and drops empty parts."""
        assert split_compound_command("  a  &&  b  ") == ["a", "b"]
        assert split_compound_command("a ;; b") == ["a", "b"]

    def test_triple_ampersand(self):
        """A lone & is not a separator."""
        assert split_compound_command("a &&& b") == ["a", "& b"]

    def test_background_ampersand_kept(self):
        """Test background ampersand kept."""
        assert split_compound_command("sleep 1 & echo done") == ["sleep 1 & echo done"]


class TestTokenize:
    """Tests for splitting a command into words."""

    def test_whitespace(self):
        """Test whitespace."""
        assert tokenize("  npm   run  build ") == ["npm", "run", "build"]

    def test_quotes_kept_in_tokens(self):
        """Test quotes kept in tokens."""
        assert tokenize("sh -c 'echo hi'") == ["sh", "-c", "'echo hi'"]


class TestUnwrapCommand:
    """Tests for unwrapping wrapper commands."""

    def test_sudo(self):
        """Test sudo."""
        assert unwrap_command("sudo npm install") == "npm install"

    def test_sudo_with_flags(self):
        """Test sudo with flags."""
        assert unwrap_command("sudo -u root npm install") == "npm install"

    def test_env_assignments(self):
        """Test env assignments."""
        assert unwrap_command("env FOO=bar BAZ=qux npm start") == "npm start"

    def test_env_flags(self):
        """Test env flags."""
        assert unwrap_command("env -u HOME npm start") == "npm start"

    def test_nested(self):
        """Test nested."""
        assert unwrap_command("sudo env FOO=bar npm test") == "npm test"

    def test_xargs(self):
        """Test xargs."""
        assert unwrap_command("xargs rm -rf") == "rm -rf"
        assert unwrap_command("xargs -I {} rm {}") == "rm {}"

    def test_timeout(self):
        """Test timeout."""
        assert unwrap_command("timeout 30 npm test") == "npm test"
        assert unwrap_command("timeout -s KILL 1.5s make") == "make"

    def test_nohup_and_nice(self):
        """Test nohup and nice."""
        assert unwrap_command("nohup node server.js") == "node server.js"
        assert unwrap_command("nice -n 10 make -j4") == "make -j4"

    def test_watch_interval(self):
        """Test watch interval."""
        assert unwrap_command("watch -n 5 make") == "make"

    def test_double_dash_ends_options(self):
        """Test double dash ends options."""
        assert unwrap_command("sudo -- rm -rf build") == "rm -rf build"

    def test_path_qualified_wrapper(self):
        """Test path qualified wrapper."""
        assert unwrap_command("/usr/bin/sudo ls") == "ls"

    def test_quoted_inner_command(self):
        """Test quoted inner command."""
        assert unwrap_command('sudo sh -c "a && b"') == 'sh -c "a && b"'

    def test_not_a_wrapper(self):
        """Test not a wrapper."""
        assert unwrap_command("npm install") is None

    def test_wrapper_without_inner_command(self):
        """Test wrapper without inner command."""
        assert unwrap_command("sudo -u root") is None
        assert unwrap_command("sudo") is None
        assert unwrap_command("env FOO=bar") is None

    def test_depth_is_bounded(self):
        """Unwrapping stops after five levels."""
        command = "sudo " * 6 + "ls"
        assert unwrap_command(command) == "sudo ls"


class TestExpandSubCommands:
    """Tests for expanding wrappers into separately approved parts."""

    def test_wrapper_expands(self):
        """Test wrapper expands."""
        assert expand_sub_commands(["sudo npm install"]) == ["sudo", "npm install"]

    def test_non_wrapper_passes_through(self):
        """Test non-wrapper passes through."""
        assert expand_sub_commands(["npm install"]) == ["npm install"]

    def test_mixed(self):
        """Test mixed."""
        assert expand_sub_commands(["cd /foo", "sudo rm -rf /tmp"]) == ["cd /foo", "sudo", "rm -rf /tmp"]

    def test_multiple_wrappers(self):
        """Test multiple wrappers."""
        assert expand_sub_commands(["sudo npm install", "env FOO=bar node app.js"]) == [
            "sudo",
            "npm install",
            "env",
            "node app.js",
        ]

    def test_full_line(self):
        """Test full line."""
        parts = expand_sub_commands(split_compound_command("cd app && sudo env X=1 make install | tee log"))
        assert parts == ["cd app", "sudo", "make install", "tee log"]
