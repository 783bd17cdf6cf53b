import sys
import os
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scan_localization.main import main


class TestMain:
    """Test the command-line demo"""

    def test_short_run_prints_report(self, capsys):
        """Test a short run completes and prints the results section"""
        exit_code = main(['--duration', '1.0', '--log-level', 'ERROR'])
        output = capsys.readouterr().out

        assert exit_code == 0
        assert "=== Scan Matching Localization ===" in output
        assert "Localization Results" in output
        assert "Position RMSE" in output

    def test_no_odometry_run(self, capsys):
        """Test the IMU-only option is reported"""
        assert main(['--duration', '1.0', '--no-odom', '--log-level', 'ERROR']) == 0
        output = capsys.readouterr().out

        assert "Odometry: disabled" in output
        assert "Odometry filter RMSE" not in output

    def test_save_plot(self, tmp_path):
        """Test --save-plot writes the comparison figure without showing it"""
        output = tmp_path / 'result.png'

        assert main(['--duration', '1.0', '--log-level', 'ERROR', '--save-plot', str(output)]) == 0

        assert output.exists()
        plt.close('all')
